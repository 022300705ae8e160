"""NPC decision making.

Three difficulty tiers share one entry point, :meth:`PolicySelector.choose_action`.
Easy swings with its hardest-hitting move.  Medium scores moves by power,
type effectiveness, STAB and accuracy and samples among them, sharpening the
draw with the profile's aggression; it also pulls a badly hurt pokemon out of
a losing matchup.  Hard plays one ply ahead against the opponent's most
threatening reply, sets up status while the target is healthy, and takes the
knock-out whenever one is on the table.  Look-ahead follows the profile's
``lookahead_depth``; a hard profile with depth 0 falls back to raw power.

The policy only ever sees the NPC-scoped :class:`BattleView`; foe stats it
needs are estimated from the species' base stats at the visible level.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass

from ..core.actions import Action, Continue, Forfeit, Struggle, Switch, UseMove, ValidActionSet, sorted_actions
from ..core.errors import EngineFault, InvalidAction
from ..core.models import Difficulty, NPCProfile, Stats, Status
from ..data.catalog import Catalog, MoveDef, compute_stats, load_catalog
from ..mechanics.stats import expected_damage, modified_stat
from ..mechanics.typechart import effectiveness
from .visibility import BattleView, PokemonView

__all__ = ["PolicySelector", "TIER_LIBRARY", "TierTuning"]

logger = logging.getLogger(__name__)

ASSUMED_STAB_POWER = 80
_STATUS_IMMUNE_TYPES = {"poison": "poison", "burn": "fire", "freeze": "ice"}


@dataclass(frozen=True)
class TierTuning:
    name: str
    weighted: bool = False
    proactive_switch: bool = False
    lookahead_depth: int = 0
    switch_margin: float = 1.5
    status_value: float = 30.0
    setup_value: float = 15.0


TIER_LIBRARY: dict[Difficulty, TierTuning] = {
    Difficulty.EASY: TierTuning("easy"),
    Difficulty.MEDIUM: TierTuning("medium", weighted=True, proactive_switch=True),
    Difficulty.HARD: TierTuning("hard", proactive_switch=True, lookahead_depth=1, switch_margin=1.25),
}


class PolicySelector:
    def __init__(self, catalog: Catalog | None = None) -> None:
        self._catalog = catalog or load_catalog()

    def choose_action(
        self,
        profile: NPCProfile,
        view: BattleView,
        legal: ValidActionSet,
        rng: random.Random,
    ) -> Action:
        """Pick one member of ``legal`` for the NPC side."""

        options = [action for action in sorted_actions(legal) if not isinstance(action, Forfeit)]
        if not options:
            raise InvalidAction("the npc has no legal action")
        if len(options) == 1:
            return options[0]

        tuning = TIER_LIBRARY[profile.difficulty]
        lookahead = _lookahead_depth(profile, tuning) >= 1
        switches = [action for action in options if isinstance(action, Switch)]
        moves = [action for action in options if isinstance(action, UseMove)]
        fallback = [action for action in options if isinstance(action, (Struggle, Continue))]
        me = view.own_active
        foe = view.opponent_active

        if me is None or me.fainted:
            return self._replacement(tuning, view, switches)
        if foe is None or (not moves and not switches):
            return (moves or fallback or switches)[0]

        if tuning.proactive_switch and switches:
            pick = self._proactive_switch(profile, tuning, view, me, foe, switches, moves, lookahead=lookahead)
            if pick is not None:
                return pick
        if not moves:
            return fallback[0] if fallback else switches[0]

        if lookahead:
            choice = self._lookahead(tuning, me, foe, moves)
        elif tuning.weighted:
            choice = self._weighted(profile, tuning, me, foe, moves, rng)
        else:
            choice = self._strongest(me, moves)
        logger.debug(
            "NPC chose action",
            extra={"profile": profile.profile_id, "tier": tuning.name, "action": repr(choice)},
        )
        return choice

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------
    def _strongest(self, me: PokemonView, moves: Sequence[UseMove]) -> UseMove:
        return min(moves, key=lambda action: (-self._move_for(me, action).power, action.index))

    def _weighted(
        self,
        profile: NPCProfile,
        tuning: TierTuning,
        me: PokemonView,
        foe: PokemonView,
        moves: Sequence[UseMove],
        rng: random.Random,
    ) -> UseMove:
        scores = [self._heuristic_score(tuning, me, foe, self._move_for(me, action)) for action in moves]
        sharpness = 1.0 + 4.0 * max(0.0, min(1.0, profile.aggression))
        weights = [max(score, 0.0) ** sharpness for score in scores]
        if not any(weights):
            return moves[0]
        return rng.choices(list(moves), weights=weights, k=1)[0]

    def _lookahead(self, tuning: TierTuning, me: PokemonView, foe: PokemonView, moves: Sequence[UseMove]) -> UseMove:
        foe_stats = self._estimate_stats(foe)
        my_speed = self._speed(me.stats.speed if me.stats else 0, me)
        foe_speed = self._speed(foe_stats.speed, foe)
        threat = self._threat(foe, foe_stats, me)
        i_die_first = foe_speed > my_speed and threat >= me.hp

        finishers: list[tuple[float, int, UseMove]] = []
        status_moves: list[tuple[float, int, UseMove]] = []
        scored: list[tuple[float, int, UseMove]] = []
        for action in moves:
            move = self._move_for(me, action)
            accuracy = (move.accuracy if move.accuracy is not None else 100) / 100
            if move.is_damaging:
                damage = self._damage_to(me, foe, foe_stats, move)
                outspeeds = move.priority > 0 or not i_die_first
                value = min(1.0, damage / max(1, foe.hp)) * accuracy
                if not outspeeds:
                    value *= 0.25
                if damage >= foe.hp and outspeeds:
                    finishers.append((accuracy, -action.index, action))
                scored.append((value, -action.index, action))
            elif self._inflicts_status(move, foe):
                status_moves.append((accuracy, -action.index, action))
            else:
                value = self._support_value(tuning, me, move) / 100
                scored.append((value, -action.index, action))

        if finishers:
            return max(finishers)[2]
        if status_moves and not i_die_first:
            return max(status_moves)[2]
        return max(scored)[2] if scored else max(status_moves)[2]

    # ------------------------------------------------------------------
    # Switching
    # ------------------------------------------------------------------
    def _replacement(self, tuning: TierTuning, view: BattleView, switches: Sequence[Switch]) -> Switch:
        if not switches:
            raise InvalidAction("the npc has no replacement to send out")
        foe = view.opponent_active
        if tuning.name == "easy" or foe is None:
            return switches[0]
        return max(switches, key=lambda action: (self._matchup(view.own_team[action.index], foe), -action.index))

    def _proactive_switch(
        self,
        profile: NPCProfile,
        tuning: TierTuning,
        view: BattleView,
        me: PokemonView,
        foe: PokemonView,
        switches: Sequence[Switch],
        moves: Sequence[UseMove],
        *,
        lookahead: bool,
    ) -> Switch | None:
        threatened = me.hp_fraction < profile.switch_hp_fraction
        if lookahead and not threatened:
            foe_stats = self._estimate_stats(foe)
            foe_faster = self._speed(foe_stats.speed, foe) > self._speed(me.stats.speed if me.stats else 0, me)
            no_finisher = all(
                self._damage_to(me, foe, foe_stats, self._move_for(me, action)) < foe.hp for action in moves
            )
            threatened = foe_faster and no_finisher and self._threat(foe, foe_stats, me) >= me.hp
        if not threatened:
            return None
        current = self._matchup(me, foe)
        best = max(switches, key=lambda action: (self._matchup(view.own_team[action.index], foe), -action.index))
        if self._matchup(view.own_team[best.index], foe) > current * tuning.switch_margin:
            return best
        return None

    def _matchup(self, mine: PokemonView, foe: PokemonView) -> float:
        """How much better ``mine`` hits ``foe`` than ``foe`` hits it back."""

        offense = 0.0
        for move_view in mine.moves:
            if move_view.pp == 0:
                continue
            move = self._catalog.moves.get(move_view.move_id)
            if move is None or not move.is_damaging:
                continue
            stab = 1.5 if move.type in mine.types else 1.0
            offense = max(offense, effectiveness(move.type, foe.types) * stab)
        defense = max((effectiveness(foe_type, mine.types) for foe_type in foe.types), default=1.0)
        for move_view in foe.moves:
            move = self._catalog.moves.get(move_view.move_id)
            if move is not None and move.is_damaging:
                defense = max(defense, effectiveness(move.type, mine.types))
        health = mine.hp_fraction
        return (max(offense, 0.5) * (0.5 + health)) / max(defense, 0.25)

    # ------------------------------------------------------------------
    # Scoring helpers
    # ------------------------------------------------------------------
    def _heuristic_score(self, tuning: TierTuning, me: PokemonView, foe: PokemonView, move: MoveDef) -> float:
        accuracy = (move.accuracy if move.accuracy is not None else 100) / 100
        if move.is_damaging:
            if move.effect_kind == "fixed":
                return float(me.level) * accuracy
            multiplier = effectiveness(move.type, foe.types)
            stab = 1.5 if move.type in me.types else 1.0
            return move.power * multiplier * stab * accuracy
        if self._inflicts_status(move, foe):
            return tuning.status_value * accuracy
        return self._support_value(tuning, me, move)

    def _support_value(self, tuning: TierTuning, me: PokemonView, move: MoveDef) -> float:
        effect = move.effect
        if effect is None:
            return 0.0
        if effect.kind == "heal":
            return 60.0 if me.hp_fraction < 0.5 else 1.0
        if effect.kind == "stat" and effect.target == "self" and effect.stat and me.stages is not None:
            return tuning.setup_value if me.stages.get(effect.stat, 0) < 2 else 1.0
        return 5.0

    def _inflicts_status(self, move: MoveDef, foe: PokemonView) -> bool:
        effect = move.effect
        if move.is_damaging or effect is None or effect.kind != "status" or not effect.status:
            return False
        if foe.status is not None:
            return False
        if _STATUS_IMMUNE_TYPES.get(effect.status) in foe.types:
            return False
        return effectiveness(move.type, foe.types) > 0

    def _damage_to(self, me: PokemonView, foe: PokemonView, foe_stats: Stats, move: MoveDef) -> int:
        if not move.is_damaging or me.stats is None:
            return 0
        effect = move.effect
        if effect is not None and effect.kind == "fixed":
            return me.level if effect.damage == "level" else int(effect.damage or 0)
        my_stages = me.stages or {}
        foe_stages = foe.stages or {}
        if move.category == "physical":
            attack = modified_stat(me.stats.attack, my_stages.get("attack", 0))
            if me.status is Status.BURN:
                attack = max(1, attack // 2)
            defense = modified_stat(foe_stats.defense, foe_stages.get("defense", 0))
        else:
            attack = modified_stat(me.stats.special, my_stages.get("special", 0))
            defense = modified_stat(foe_stats.special, foe_stages.get("special", 0))
        return expected_damage(
            me.level,
            attack,
            defense,
            move.power,
            stab=move.type in me.types,
            multiplier=effectiveness(move.type, foe.types),
        )

    def _threat(self, foe: PokemonView, foe_stats: Stats, me: PokemonView) -> int:
        """Best damage the foe is expected to deal to ``me`` next turn."""

        if me.stats is None:
            return 0
        candidates: list[tuple[str, int]] = []
        for move_view in foe.moves:
            move = self._catalog.moves.get(move_view.move_id)
            if move is not None and move.is_damaging and move.effect_kind != "fixed":
                candidates.append((move.type, move.power))
        if not candidates:
            candidates = [(foe_type, ASSUMED_STAB_POWER) for foe_type in foe.types]
        foe_stages = foe.stages or {}
        my_stages = me.stages or {}
        best = 0
        for move_type, power in candidates:
            if move_type in {"fire", "water", "electric", "grass", "ice", "psychic", "dragon"}:
                attack = modified_stat(foe_stats.special, foe_stages.get("special", 0))
                defense = modified_stat(me.stats.special, my_stages.get("special", 0))
            else:
                attack = modified_stat(foe_stats.attack, foe_stages.get("attack", 0))
                defense = modified_stat(me.stats.defense, my_stages.get("defense", 0))
            best = max(
                best,
                expected_damage(
                    foe.level,
                    attack,
                    defense,
                    power,
                    stab=move_type in foe.types,
                    multiplier=effectiveness(move_type, me.types),
                ),
            )
        return best

    def _estimate_stats(self, foe: PokemonView) -> Stats:
        species = self._catalog.species.get(foe.species)
        if species is None:
            return Stats(hp=foe.max_hp, attack=100, defense=100, special=100, speed=100)
        return compute_stats(species.base, foe.level)

    @staticmethod
    def _speed(raw: int, mon: PokemonView) -> int:
        stages = mon.stages or {}
        speed = modified_stat(raw, stages.get("speed", 0)) if raw else 0
        if mon.status is Status.PARALYSIS:
            speed //= 4
        return speed

    def _move_for(self, me: PokemonView, action: UseMove) -> MoveDef:
        move_id = me.moves[action.index].move_id
        move = self._catalog.moves.get(move_id)
        if move is None:
            raise EngineFault(f"unknown move '{move_id}' in slot {action.index}")
        return move


def _lookahead_depth(profile: NPCProfile, tuning: TierTuning) -> int:
    """The profile's own depth wins; profiles that leave it unset get the tier's."""

    return tuning.lookahead_depth if profile.lookahead_depth is None else profile.lookahead_depth
