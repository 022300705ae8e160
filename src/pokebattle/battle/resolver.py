"""Turn resolution state machine.

:meth:`TurnResolver.apply` takes a stored session and one player action and
returns the next session snapshot together with the events produced.  The
input session is never mutated; all work happens on a deep copy that is
discarded if anything goes wrong, so a failed apply leaves nothing to roll
back.

Randomness comes from ``random.Random(f"{seed}:{version}")``.  Retrying an
apply against the same stored version therefore replays the exact same turn.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass

from ..core.actions import Action, Forfeit, Switch, ValidActionSet, describe_action
from ..core.errors import EngineFault, InvalidAction, SessionTerminated
from ..core.events import BATTLE_ENDED, FAINT, FORFEIT, TURN_STARTED, VOLATILE, BattleEvent, EventLog
from ..core.models import BattleSession, NPCProfile, Outcome, Phase, Side, TeamPair, Volatile, utcnow
from ..core.settings import BattleSettings
from ..data.catalog import load_catalog
from ..mechanics.gen1 import Gen1Engine
from ..mechanics.interface import MechanicsEngine
from .ordering import order_actions
from .policy import PolicySelector
from .validator import forced_action, valid_actions
from .visibility import view_for

__all__ = ["TurnResolver", "TurnResult"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnResult:
    session: BattleSession
    events: list[BattleEvent]


class TurnResolver:
    def __init__(
        self,
        engine: MechanicsEngine | None = None,
        policy: PolicySelector | None = None,
        *,
        settings: BattleSettings | None = None,
        profiles: Mapping[str, NPCProfile] | None = None,
    ) -> None:
        self.engine = engine or Gen1Engine()
        self.policy = policy or PolicySelector()
        self.settings = settings or BattleSettings.from_flags()
        self._profiles = dict(profiles) if profiles is not None else dict(load_catalog().opponents)

    def legal_actions(self, session: BattleSession, side: Side = Side.PLAYER) -> ValidActionSet:
        return valid_actions(session, side, prefilter_incapacitated=self.settings.prefilter_incapacitated)

    def apply(self, session: BattleSession, action: Action) -> TurnResult:
        """Resolve ``action`` for the player and everything it sets in motion."""

        if session.is_ended:
            raise SessionTerminated(session.session_id)
        if action not in self.legal_actions(session):
            raise InvalidAction(f"{describe_action(action)} is not a legal action right now", action=action)

        rng = random.Random(f"{session.seed}:{session.version}")
        working = deepcopy(session)
        working.phase = Phase.RESOLVING_TURN
        log = EventLog(working.turn)
        try:
            self._run(working, action, rng, log)
        except EngineFault as exc:
            logger.error(
                "Engine fault while resolving turn",
                extra={"session_id": session.session_id, "turn": session.turn, "error": str(exc)},
            )
            raise

        if working.phase is Phase.RESOLVING_TURN:
            working.phase = Phase.WAITING_FOR_PLAYER_ACTION
        events = log.events
        working.events.extend(events)
        working.version = session.version + 1
        working.updated_at = utcnow()
        logger.debug(
            "Resolved player action",
            extra={
                "session_id": working.session_id,
                "action": describe_action(action),
                "turn": working.turn,
                "events": len(events),
                "version": working.version,
            },
        )
        return TurnResult(session=working, events=events)

    # ------------------------------------------------------------------
    # Turn flow
    # ------------------------------------------------------------------
    def _run(self, working: BattleSession, action: Action, rng: random.Random, log: EventLog) -> None:
        if isinstance(action, Forfeit):
            log.emit(FORFEIT, "The player forfeited the battle.", side=Side.PLAYER)
            self._end(working, Outcome.NPC_WINS, log)
            return

        active = working.player_team.active
        if active is None or active.is_fainted:
            self._engine_step(working, Side.PLAYER, action, rng, log)
            self._next_turn(working, log)
            return

        next_action: Action = action
        for _tick in range(self.settings.max_ticks):
            self._play_turn(working, next_action, rng, log)
            if working.phase is Phase.ENDED or working.player_team.needs_replacement():
                return
            if not self.settings.auto_advance_forced:
                return
            player_active = working.player_team.active
            forced = forced_action(player_active) if player_active is not None else None
            if forced is None:
                return
            next_action = forced
        raise EngineFault(f"turn resolution did not settle within {self.settings.max_ticks} ticks")

    def _play_turn(self, working: BattleSession, player_action: Action, rng: random.Random, log: EventLog) -> None:
        log.turn = working.turn
        npc_action = self._npc_action(working, rng)
        ordered = order_actions(
            working.team_pair(),
            [(Side.PLAYER, player_action), (Side.NPC, npc_action)],
            priority_of=self.engine.move_priority,
            tie_break=self.settings.tie_break,
            rng=rng,
        )
        for side, act in ordered:
            actor = working.team(side).active
            if actor is None or actor.is_fainted:
                continue
            if not isinstance(act, Switch):
                target = working.team(side.opponent).active
                if target is None or target.is_fainted:
                    continue
            self._engine_step(working, side, act, rng, log)
            self._check_faints(working, log)
            if self._check_winner(working, log):
                return

        pair, events = self._guard(lambda: self.engine.apply_end_of_turn(working.team_pair(), rng), "end of turn")
        self._adopt(working, pair, events, log)
        self._check_faints(working, log)
        if self._check_winner(working, log):
            return

        if working.npc_team.needs_replacement():
            self._engine_step(working, Side.NPC, self._npc_action(working, rng), rng, log)
        if working.player_team.needs_replacement():
            return
        self._next_turn(working, log)

    def _npc_action(self, working: BattleSession, rng: random.Random) -> Action:
        legal = valid_actions(working, Side.NPC, prefilter_incapacitated=self.settings.prefilter_incapacitated)
        view = view_for(working, Side.NPC, prefilter_incapacitated=self.settings.prefilter_incapacitated)
        try:
            choice = self.policy.choose_action(self._profile(working), view, legal, rng)
        except InvalidAction as exc:
            raise EngineFault(f"npc policy could not act: {exc.message}") from exc
        if choice not in legal:
            raise EngineFault(f"npc policy chose an illegal action: {describe_action(choice)}")
        return choice

    # ------------------------------------------------------------------
    # Engine calls
    # ------------------------------------------------------------------
    def _engine_step(
        self,
        working: BattleSession,
        side: Side,
        action: Action,
        rng: random.Random,
        log: EventLog,
    ) -> None:
        pair, events = self._guard(
            lambda: self.engine.resolve_action(working.team_pair(), side, action, rng),
            describe_action(action),
        )
        self._adopt(working, pair, events, log)

    @staticmethod
    def _guard(call, label: str) -> tuple[TeamPair, list[BattleEvent]]:
        try:
            return call()
        except EngineFault:
            raise
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EngineFault(f"engine failed on {label}: {exc}") from exc

    def _adopt(self, working: BattleSession, pair: TeamPair, events: list[BattleEvent], log: EventLog) -> None:
        for side in (Side.PLAYER, Side.NPC):
            team = pair.team(side)
            if len(team) != len(working.team(side)):
                raise EngineFault(f"engine changed the size of the {side.value} team")
            if team.active_index is not None and not 0 <= team.active_index < len(team):
                raise EngineFault(f"engine produced an invalid active slot for {side.value}")
            for mon in team:
                if not 0 <= mon.current_hp <= mon.max_hp:
                    raise EngineFault(f"engine left {mon.species} with {mon.current_hp} HP")
                if any(not 0 <= slot.pp <= slot.max_pp for slot in mon.moves):
                    raise EngineFault(f"engine left {mon.species} with out-of-range PP")
        working.adopt(pair)
        log.extend(events)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------
    def _check_faints(self, working: BattleSession, log: EventLog) -> None:
        for side in (Side.PLAYER, Side.NPC):
            team = working.team(side)
            mon = team.active
            if mon is None or not mon.is_fainted:
                continue
            log.emit(FAINT, f"{mon.species.title()} fainted!", side=side, slot=team.active_index, species=mon.species)
            mon.volatile = Volatile()
            team.active_index = None
            foe_team = working.team(side.opponent)
            foe = foe_team.active
            if foe is None or foe.is_fainted:
                continue
            if foe.volatile.locked_kind == "bind" or foe.volatile.bound_turns:
                if foe.volatile.locked_kind == "bind":
                    foe.volatile.locked_move = None
                    foe.volatile.locked_kind = None
                    foe.volatile.locked_turns = 0
                foe.volatile.bound_turns = 0
                log.emit(
                    VOLATILE,
                    f"{foe.species.title()} is no longer bound.",
                    side=side.opponent,
                    slot=foe_team.active_index,
                    bound_turns=0,
                )

    def _check_winner(self, working: BattleSession, log: EventLog) -> bool:
        player_alive = working.player_team.has_healthy()
        npc_alive = working.npc_team.has_healthy()
        if player_alive and npc_alive:
            return False
        if not player_alive and not npc_alive:
            outcome = Outcome.DRAW
        elif player_alive:
            outcome = Outcome.PLAYER_WINS
        else:
            outcome = Outcome.NPC_WINS
        self._end(working, outcome, log)
        return True

    def _end(self, working: BattleSession, outcome: Outcome, log: EventLog) -> None:
        working.phase = Phase.ENDED
        working.outcome = outcome
        log.emit(BATTLE_ENDED, f"The battle is over: {outcome.value.replace('_', ' ')}.", outcome=outcome.value)
        logger.info(
            "Battle ended",
            extra={"session_id": working.session_id, "outcome": outcome.value, "turn": working.turn},
        )

    def _next_turn(self, working: BattleSession, log: EventLog) -> None:
        working.turn += 1
        log.turn = working.turn
        log.emit(TURN_STARTED, f"Turn {working.turn} begins.", turn=working.turn)

    def _profile(self, working: BattleSession) -> NPCProfile:
        profile = self._profiles.get(working.npc_profile_id)
        if profile is None:
            raise EngineFault(f"unknown npc profile '{working.npc_profile_id}'")
        return profile
