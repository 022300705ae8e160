from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ...battle.lifecycle import SessionLifecycleManager
from ...battle.policy import PolicySelector
from ...battle.resolver import TurnResolver, TurnResult
from ...battle.validator import forced_action
from ...battle.visibility import BattleView, PokemonView, view_for
from ...core.actions import Action, action_to_dict, describe_action, sorted_actions
from ...core.codec import event_to_dict
from ...core.errors import Conflict, ValidationError
from ...core.events import BattleEvent
from ...core.models import BattleSession, NPCProfile, Side
from ...core.settings import BattleSettings
from ...data.catalog import Catalog, load_catalog
from ...mechanics.gen1 import Gen1Engine
from ...mechanics.interface import MechanicsEngine
from ...store.base import SessionStore
from ...store.memory import InMemorySessionStore
from .concurrency import run_blocking
from .schemas import (
    ActionPayload,
    ActionResultPayload,
    BattleStatePayload,
    CreateBattleResponse,
    EventPayload,
    EventsPayload,
    MovePayload,
    OpponentPayload,
    PokemonPayload,
    RosterMemberPayload,
    TeamInfoPayload,
    TeamSummaryPayload,
    ValidActionsPayload,
)

__all__ = ["BattleService"]

logger = logging.getLogger(__name__)


class BattleService:
    """Load, resolve and save battles against a versioned session store.

    The service holds no battle state of its own; every call reconstructs the
    session from the store, so any number of service instances can share one
    store.
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        *,
        catalog: Catalog | None = None,
        engine: MechanicsEngine | None = None,
        settings: BattleSettings | None = None,
        profiles: Mapping[str, NPCProfile] | None = None,
    ) -> None:
        self.catalog = catalog or load_catalog()
        self.settings = settings or BattleSettings.from_flags()
        self.store: SessionStore = store if store is not None else InMemorySessionStore()
        self.lifecycle = SessionLifecycleManager(self.catalog)
        self.resolver = TurnResolver(
            engine or Gen1Engine(self.catalog),
            PolicySelector(self.catalog),
            settings=self.settings,
            profiles=profiles if profiles is not None else self.catalog.opponents,
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def list_teams(self) -> list[TeamSummaryPayload]:
        return [
            TeamSummaryPayload(
                team_id=team.team_id,
                name=team.name,
                description=team.description,
                members=[
                    RosterMemberPayload(species=entry.species, level=entry.level, moves=list(entry.moves))
                    for entry in team.members
                ],
            )
            for team in sorted(self.catalog.teams.values(), key=lambda item: item.team_id)
        ]

    def list_opponents(self) -> list[OpponentPayload]:
        return [
            OpponentPayload(
                opponent_id=profile.profile_id,
                name=profile.name,
                difficulty=profile.difficulty.value,
                description=profile.description,
                team_size=len(profile.roster),
            )
            for profile in sorted(self.catalog.opponents.values(), key=lambda item: item.profile_id)
        ]

    # ------------------------------------------------------------------
    # Battles
    # ------------------------------------------------------------------
    def create_battle(
        self,
        team_id: str,
        opponent_id: str,
        *,
        player_id: str,
        seed: int | None = None,
    ) -> CreateBattleResponse:
        session = self.lifecycle.create_from_prefab(team_id, opponent_id, player_id=player_id, seed=seed)
        self.store.insert(session)
        return CreateBattleResponse(session_id=session.session_id, state=self._state_payload(session))

    def start_session(self, session: BattleSession) -> BattleSession:
        """Persist a session built elsewhere (custom teams, tests, scripts)."""

        self.store.insert(session)
        return session

    def get_state(self, session_id: str) -> BattleStatePayload:
        session, _version = self.store.load(session_id)
        return self._state_payload(session)

    def valid_actions(self, session_id: str) -> ValidActionsPayload:
        session, _version = self.store.load(session_id)
        legal = self.resolver.legal_actions(session)
        active = session.player_team.active
        forced = active is not None and not active.is_fainted and forced_action(active) is not None
        return ValidActionsPayload(session_id=session_id, actions=_action_payloads(legal), forced=forced)

    def apply_action(self, session_id: str, action: Action, *, expected_version: int | None = None) -> TurnResult:
        """Resolve ``action`` and persist the result.

        The action is pinned to ``expected_version`` (or, when omitted, to the
        version first loaded).  A failed save is retried only while the store
        still holds that version; once another writer has moved the session on,
        ``Conflict`` is raised without replaying the action.
        """

        retries = max(0, self.settings.max_conflict_retries)
        pinned = expected_version
        attempt = 0
        while True:
            attempt += 1
            session, version = self.store.load(session_id)
            if pinned is None:
                pinned = version
            if version != pinned:
                logger.info(
                    "Session moved on before the action was applied",
                    extra={"session_id": session_id, "expected": pinned, "actual": version},
                )
                raise Conflict(session_id, expected=pinned, actual=version)
            result = self.resolver.apply(session, action)
            try:
                self.store.save(session_id, result.session, version)
            except Conflict as exc:
                if attempt > retries:
                    logger.warning(
                        "Giving up after repeated version conflicts",
                        extra={"session_id": session_id, "attempts": attempt},
                    )
                    raise
                logger.warning(
                    "Version conflict while saving turn; retrying",
                    extra={"session_id": session_id, "attempt": attempt, "actual": exc.actual},
                )
                continue
            logger.debug(
                "Turn persisted",
                extra={
                    "session_id": session_id,
                    "action": describe_action(action),
                    "version": result.session.version,
                    "attempts": attempt,
                },
            )
            return result

    def submit_action(
        self,
        session_id: str,
        action: Action,
        *,
        expected_version: int | None = None,
    ) -> ActionResultPayload:
        result = self.apply_action(session_id, action, expected_version=expected_version)
        return ActionResultPayload(
            events=[_event_payload(event) for event in result.events],
            state=self._state_payload(result.session),
        )

    def team_info(self, session_id: str) -> TeamInfoPayload:
        session, _version = self.store.load(session_id)
        view = view_for(session, Side.PLAYER)
        return TeamInfoPayload(
            session_id=session_id,
            active_index=view.own_active_index,
            members=[self._pokemon_payload(mon) for mon in view.own_team],
        )

    def events(self, session_id: str, last_turns: int | None = None) -> EventsPayload:
        if last_turns is not None and last_turns < 1:
            raise ValidationError("last_turns must be at least 1")
        session, _version = self.store.load(session_id)
        events: Iterable[BattleEvent] = session.events
        if last_turns is not None:
            cutoff = session.turn - last_turns
            events = [event for event in session.events if event.turn > cutoff]
        return EventsPayload(
            session_id=session_id,
            turn=session.turn,
            last_turns=last_turns,
            events=[_event_payload(event) for event in events],
        )

    # ------------------------------------------------------------------
    # Async wrappers
    # ------------------------------------------------------------------
    async def create_battle_async(
        self,
        team_id: str,
        opponent_id: str,
        *,
        player_id: str,
        seed: int | None = None,
    ) -> CreateBattleResponse:
        return await run_blocking(self.create_battle, team_id, opponent_id, player_id=player_id, seed=seed)

    async def get_state_async(self, session_id: str) -> BattleStatePayload:
        return await run_blocking(self.get_state, session_id)

    async def valid_actions_async(self, session_id: str) -> ValidActionsPayload:
        return await run_blocking(self.valid_actions, session_id)

    async def submit_action_async(
        self,
        session_id: str,
        action: Action,
        *,
        expected_version: int | None = None,
    ) -> ActionResultPayload:
        return await run_blocking(self.submit_action, session_id, action, expected_version=expected_version)

    async def team_info_async(self, session_id: str) -> TeamInfoPayload:
        return await run_blocking(self.team_info, session_id)

    async def events_async(self, session_id: str, last_turns: int | None = None) -> EventsPayload:
        return await run_blocking(self.events, session_id, last_turns)

    # ------------------------------------------------------------------
    # Payload builders
    # ------------------------------------------------------------------
    def _state_payload(self, session: BattleSession) -> BattleStatePayload:
        view = view_for(session, Side.PLAYER, prefilter_incapacitated=self.settings.prefilter_incapacitated)
        legal = self.resolver.legal_actions(session)
        return _view_payload(view, legal, self._pokemon_payload)

    def _pokemon_payload(self, mon: PokemonView) -> PokemonPayload:
        species = self.catalog.species.get(mon.species)
        moves: list[MovePayload] = []
        for move_view in mon.moves:
            move = self.catalog.moves.get(move_view.move_id)
            moves.append(
                MovePayload(
                    index=move_view.index,
                    move_id=move_view.move_id,
                    name=move.name if move else None,
                    type=move.type if move else None,
                    power=move.power if move else None,
                    accuracy=move.accuracy if move else None,
                    pp=move_view.pp,
                    max_pp=move_view.max_pp,
                )
            )
        return PokemonPayload(
            slot=mon.slot,
            species=mon.species,
            name=species.name if species else mon.species.title(),
            level=mon.level,
            types=list(mon.types),
            hp=mon.hp,
            max_hp=mon.max_hp,
            status=mon.status.value if mon.status else None,
            active=mon.active,
            fainted=mon.fainted,
            stages=dict(mon.stages) if mon.stages is not None else None,
            stats=vars(mon.stats).copy() if mon.stats is not None else None,
            moves=moves,
        )


def _action_payloads(actions: Iterable[Action]) -> list[ActionPayload]:
    payloads: list[ActionPayload] = []
    for action in sorted_actions(actions):
        data = action_to_dict(action)
        payloads.append(ActionPayload(kind=data["kind"], index=data.get("index"), label=describe_action(action)))
    return payloads


def _event_payload(event: BattleEvent) -> EventPayload:
    data: dict[str, Any] = event_to_dict(event)
    return EventPayload(**data)


def _view_payload(
    view: BattleView,
    legal: Iterable[Action],
    convert: Callable[[PokemonView], PokemonPayload],
) -> BattleStatePayload:
    return BattleStatePayload(
        session_id=view.session_id,
        side=view.side.value,
        turn=view.turn,
        phase=view.phase.value,
        outcome=view.outcome.value if view.outcome else None,
        version=view.version,
        own_team=[convert(mon) for mon in view.own_team],
        own_active_index=view.own_active_index,
        opponent_active=convert(view.opponent_active) if view.opponent_active else None,
        opponent_bench=[convert(mon) for mon in view.opponent_bench],
        opponent_unrevealed=view.opponent_unrevealed,
        opponent_team_size=view.opponent_team_size,
        can_act=view.can_act,
        valid_actions=_action_payloads(legal),
    )
