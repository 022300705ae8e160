"""Reference Gen-1 mechanics engine.

Implements the first generation's damage formula, speed-based critical hits,
accuracy/evasion stages, the five major statuses, confusion, recharge turns,
two-turn charge moves, binding moves and Struggle.  Every change to HP, PP,
status or stages is reported as an event carrying the resulting value.
"""

from __future__ import annotations

import logging
import random
from copy import deepcopy

from ..core.actions import Action, Continue, Struggle, Switch, UseMove, describe_action
from ..core.errors import EngineFault
from ..core.events import (
    CRITICAL_HIT,
    DAMAGE,
    EFFECTIVENESS,
    FAILED_TO_MOVE,
    HEAL,
    MISS,
    MOVE_USED,
    NO_EFFECT,
    STAT_CHANGE,
    STATUS,
    STATUS_CURED,
    SWITCH_IN,
    SWITCH_OUT,
    VOLATILE,
    BattleEvent,
    EventLog,
)
from ..core.models import PokemonInstance, Side, StatStages, Status, Team, TeamPair, Volatile
from ..data.catalog import Catalog, MoveDef, load_catalog
from .stats import base_damage, modified_stat, stage_multiplier
from .typechart import effectiveness, label_for

__all__ = ["Gen1Engine", "STRUGGLE_POWER"]

logger = logging.getLogger(__name__)

STRUGGLE_POWER = 50
CONFUSION_POWER = 40
RESIDUAL_DIVISOR = 16
PARALYSIS_SKIP_CHANCE = 0.25
CONFUSION_SELF_HIT_CHANCE = 0.5
_STATUS_TYPE_IMMUNITY = {Status.POISON: "poison", Status.BURN: "fire", Status.FREEZE: "ice"}


class Gen1Engine:
    """Stateless rules engine; one instance can serve every session."""

    def __init__(self, catalog: Catalog | None = None) -> None:
        self._catalog = catalog or load_catalog()

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def move_priority(self, move_id: str) -> int:
        return self._move(move_id).priority

    # ------------------------------------------------------------------
    # Engine protocol
    # ------------------------------------------------------------------
    def resolve_action(
        self,
        state: TeamPair,
        side: Side,
        action: Action,
        rng: random.Random,
    ) -> tuple[TeamPair, list[BattleEvent]]:
        working = deepcopy(state)
        log = EventLog(working.turn)
        if isinstance(action, Switch):
            self._switch(working, side, action.index, log)
        elif isinstance(action, UseMove):
            self._use_move(working, side, action.index, rng, log)
        elif isinstance(action, Struggle):
            self._struggle(working, side, rng, log)
        elif isinstance(action, Continue):
            self._continue(working, side, rng, log)
        else:
            raise EngineFault(f"the engine does not resolve '{describe_action(action)}'")
        logger.debug(
            "Resolved action",
            extra={"side": side.value, "action": describe_action(action), "events": len(log)},
        )
        return working, log.events

    def apply_end_of_turn(self, state: TeamPair, rng: random.Random) -> tuple[TeamPair, list[BattleEvent]]:
        working = deepcopy(state)
        log = EventLog(working.turn)
        for side in (Side.PLAYER, Side.NPC):
            team = working.team(side)
            mon = team.active
            if mon is None or mon.is_fainted:
                continue
            if mon.status in (Status.POISON, Status.BURN):
                amount = max(1, mon.max_hp // RESIDUAL_DIVISOR)
                verb = "poison" if mon.status is Status.POISON else "burn"
                self._hurt(
                    mon,
                    side,
                    team.active_index,
                    amount,
                    log,
                    reason=mon.status.value,
                    message=f"{self._name(mon)} is hurt by its {verb}.",
                )
        return working, log.events

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def _switch(self, state: TeamPair, side: Side, index: int, log: EventLog) -> None:
        team = state.team(side)
        if not 0 <= index < len(team.members):
            raise EngineFault(f"{side.value} has no team slot {index}")
        incoming = team.members[index]
        if incoming.is_fainted or index == team.active_index:
            raise EngineFault(f"{side.value} cannot switch to slot {index}")
        outgoing = team.active
        reason = "replacement"
        if outgoing is not None and not outgoing.is_fainted:
            reason = "switch"
            outgoing.stages = StatStages()
            outgoing.volatile = Volatile()
            log.emit(
                SWITCH_OUT,
                f"{self._name(outgoing)}, come back!",
                side=side,
                slot=team.active_index,
                stages=outgoing.stages.as_dict(),
            )
        team.active_index = index
        incoming.revealed = True
        log.emit(
            SWITCH_IN,
            f"Go, {self._name(incoming)}!",
            side=side,
            slot=index,
            species=incoming.species,
            hp=incoming.current_hp,
            reason=reason,
        )

    def _use_move(self, state: TeamPair, side: Side, index: int, rng: random.Random, log: EventLog) -> None:
        team, mon = self._battler(state, side)
        if not 0 <= index < len(mon.moves):
            raise EngineFault(f"{self._name(mon)} has no move slot {index}")
        vol = mon.volatile
        if vol.recharging:
            raise EngineFault(f"{self._name(mon)} must recharge this turn")
        if vol.locked_move is not None and vol.locked_move != index:
            raise EngineFault(f"{self._name(mon)} is locked into move slot {vol.locked_move}")
        continuing = vol.locked_move == index
        slot = mon.moves[index]
        move = self._move(slot.move_id)

        if not self._ready_to_act(state, side, rng, log):
            if continuing:
                self._drop_lock(state, side, log)
            return
        if not continuing:
            if slot.pp <= 0:
                raise EngineFault(f"{move.name} has no PP left")
            slot.pp -= 1
        if index not in mon.revealed_moves:
            mon.revealed_moves.append(index)
        log.emit(
            MOVE_USED,
            f"{self._name(mon)} used {move.name}!",
            side=side,
            slot=team.active_index,
            move=move.move_id,
            move_index=index,
            pp=slot.pp,
        )

        if move.effect_kind == "charge":
            if not continuing:
                vol.locked_move = index
                vol.locked_kind = "charge"
                vol.locked_turns = 1
                log.emit(
                    VOLATILE,
                    f"{self._name(mon)} is gathering power!",
                    side=side,
                    slot=team.active_index,
                    locked_move=index,
                )
                return
            vol.locked_move = None
            vol.locked_kind = None
            vol.locked_turns = 0
        self._execute(state, side, move, rng, log, move_index=index, continuing=continuing)

    def _struggle(self, state: TeamPair, side: Side, rng: random.Random, log: EventLog) -> None:
        team, mon = self._battler(state, side)
        if any(slot.pp > 0 for slot in mon.moves):
            raise EngineFault(f"{self._name(mon)} still has moves with PP")
        if not self._ready_to_act(state, side, rng, log):
            return
        log.emit(
            MOVE_USED,
            f"{self._name(mon)} has no moves left and struggles!",
            side=side,
            slot=team.active_index,
            move="struggle",
            move_index=None,
        )
        foe_team, foe = self._target(state, side)
        critical = self._critical(mon, high_crit=False, rng=rng)
        damage = self._damage(mon, foe, None, STRUGGLE_POWER, physical=True, critical=critical, multiplier=1.0, rng=rng)
        dealt = self._hurt(
            foe,
            side.opponent,
            foe_team.active_index,
            damage,
            log,
            reason="attack",
            message=f"{self._name(foe)} took {damage} damage.",
        )
        if critical:
            log.emit(CRITICAL_HIT, "A critical hit!", side=side.opponent, slot=foe_team.active_index)
        self._hurt(
            mon,
            side,
            team.active_index,
            max(1, dealt // 2),
            log,
            reason="recoil",
            message=f"{self._name(mon)} is hit with recoil!",
        )

    def _continue(self, state: TeamPair, side: Side, rng: random.Random, log: EventLog) -> None:
        team, mon = self._battler(state, side)
        vol = mon.volatile
        if vol.recharging:
            vol.recharging = False
            log.emit(
                FAILED_TO_MOVE,
                f"{self._name(mon)} must recharge!",
                side=side,
                slot=team.active_index,
                reason="recharge",
            )
            return
        if vol.bound_turns > 0 or mon.status in (Status.SLEEP, Status.FREEZE):
            self._ready_to_act(state, side, rng, log)
            return
        # a bind that ended earlier in the same turn leaves nothing to wait out
        log.emit(
            FAILED_TO_MOVE,
            f"{self._name(mon)} is free to move again.",
            side=side,
            slot=team.active_index,
            reason="released",
        )

    # ------------------------------------------------------------------
    # Move execution
    # ------------------------------------------------------------------
    def _execute(
        self,
        state: TeamPair,
        side: Side,
        move: MoveDef,
        rng: random.Random,
        log: EventLog,
        *,
        move_index: int,
        continuing: bool,
    ) -> None:
        team, mon = self._battler(state, side)
        foe_team, foe = self._target(state, side)
        effect = move.effect
        self_targeted = effect is not None and not move.is_damaging and (effect.target == "self" or effect.kind == "heal")

        if not self_targeted and not continuing and not self._hits(mon, foe, move, rng):
            log.emit(MISS, f"{self._name(mon)}'s attack missed!", side=side, slot=team.active_index, move=move.move_id)
            return

        if not move.is_damaging:
            self._apply_status_move(state, side, move, rng, log)
            return

        foe_side = side.opponent
        foe_slot = foe_team.active_index
        critical = False
        multiplier = 1.0
        if effect is not None and effect.kind == "fixed":
            damage = mon.level if effect.damage == "level" else int(effect.damage or 0)
        else:
            multiplier = effectiveness(move.type, foe.types)
            if multiplier == 0:
                log.emit(
                    NO_EFFECT,
                    f"It doesn't affect {self._name(foe)}...",
                    side=foe_side,
                    slot=foe_slot,
                    move=move.move_id,
                )
                return
            critical = self._critical(mon, high_crit=move.high_crit, rng=rng)
            damage = self._damage(
                mon,
                foe,
                move.type,
                move.power,
                physical=move.category == "physical",
                critical=critical,
                multiplier=multiplier,
                rng=rng,
            )
        dealt = self._hurt(
            foe,
            foe_side,
            foe_slot,
            damage,
            log,
            reason="attack",
            message=f"{self._name(foe)} took {damage} damage.",
        )
        if critical:
            log.emit(CRITICAL_HIT, "A critical hit!", side=foe_side, slot=foe_slot)
        if multiplier != 1:
            log.emit(
                EFFECTIVENESS,
                f"It's {label_for(multiplier)}!",
                side=foe_side,
                slot=foe_slot,
                multiplier=multiplier,
            )
        if not foe.is_fainted and foe.status is Status.FREEZE and move.type == "fire":
            foe.status = None
            log.emit(
                STATUS_CURED,
                f"{self._name(foe)} thawed out!",
                side=foe_side,
                slot=foe_slot,
                status=None,
                reason="thaw",
            )
        if effect is None or dealt <= 0:
            return

        kind = effect.kind
        if kind == "recoil":
            self._hurt(
                mon,
                side,
                team.active_index,
                max(1, int(dealt * effect.fraction)),
                log,
                reason="recoil",
                message=f"{self._name(mon)} is hit with recoil!",
            )
        elif kind == "drain":
            self._restore(
                mon,
                side,
                team.active_index,
                max(1, int(dealt * effect.fraction)),
                log,
                message=f"{self._name(foe)} had its energy drained!",
            )
        elif foe.is_fainted:
            return
        elif kind == "status" and effect.status and _roll(effect.chance, rng):
            self._inflict(foe, foe_side, foe_slot, Status(effect.status), rng, log, move=move, primary=False)
        elif kind == "stat" and effect.stat and _roll(effect.chance, rng):
            target_side = side if effect.target == "self" else foe_side
            self._shift_stage(state, target_side, effect.stat, effect.stages, log, announce_failure=False)
        elif kind == "confuse" and _roll(effect.chance, rng):
            self._confuse(foe, foe_side, foe_slot, rng, log, primary=False)
        elif kind == "recharge":
            mon.volatile.recharging = True
            log.emit(
                VOLATILE,
                f"{self._name(mon)} will need to recharge.",
                side=side,
                slot=team.active_index,
                recharging=True,
            )
        elif kind == "bind":
            self._bind(state, side, move_index, continuing, rng, log)

    def _apply_status_move(self, state: TeamPair, side: Side, move: MoveDef, rng: random.Random, log: EventLog) -> None:
        team, mon = self._battler(state, side)
        foe_team, foe = self._target(state, side)
        effect = move.effect
        if effect is None:
            log.emit(NO_EFFECT, "But nothing happened!", side=side, slot=team.active_index)
            return
        if effect.kind == "status" and effect.status:
            self._inflict(foe, side.opponent, foe_team.active_index, Status(effect.status), rng, log, move=move, primary=True)
        elif effect.kind == "stat" and effect.stat:
            target_side = side if effect.target == "self" else side.opponent
            self._shift_stage(state, target_side, effect.stat, effect.stages, log, announce_failure=True)
        elif effect.kind == "confuse":
            self._confuse(foe, side.opponent, foe_team.active_index, rng, log, primary=True)
        elif effect.kind == "heal":
            amount = max(1, int(mon.max_hp * effect.fraction))
            if mon.current_hp >= mon.max_hp:
                log.emit(NO_EFFECT, f"{self._name(mon)}'s HP is full!", side=side, slot=team.active_index)
                return
            self._restore(mon, side, team.active_index, amount, log, message=f"{self._name(mon)} regained health!")
        else:
            raise EngineFault(f"{move.name} has an unsupported effect '{effect.kind}'")

    def _bind(
        self,
        state: TeamPair,
        side: Side,
        move_index: int,
        continuing: bool,
        rng: random.Random,
        log: EventLog,
    ) -> None:
        team, mon = self._battler(state, side)
        foe_team, foe = self._target(state, side)
        vol = mon.volatile
        if continuing:
            vol.locked_turns -= 1
            foe.volatile.bound_turns = vol.locked_turns
            if vol.locked_turns > 0:
                return
            vol.locked_move = None
            vol.locked_kind = None
            log.emit(
                VOLATILE,
                f"{self._name(foe)} was released!",
                side=side.opponent,
                slot=foe_team.active_index,
                bound_turns=0,
            )
            return
        turns = rng.randint(2, 5) - 1
        vol.locked_move = move_index
        vol.locked_kind = "bind"
        vol.locked_turns = turns
        foe.volatile.bound_turns = turns
        log.emit(
            VOLATILE,
            f"{self._name(foe)} is trapped by {self._name(mon)}!",
            side=side.opponent,
            slot=foe_team.active_index,
            bound_turns=turns,
        )

    def _drop_lock(self, state: TeamPair, side: Side, log: EventLog) -> None:
        team, mon = self._battler(state, side)
        vol = mon.volatile
        if vol.locked_kind == "bind":
            foe_team = state.foe(side)
            foe = foe_team.active
            if foe is not None and foe.volatile.bound_turns:
                foe.volatile.bound_turns = 0
                log.emit(
                    VOLATILE,
                    f"{self._name(foe)} was released!",
                    side=side.opponent,
                    slot=foe_team.active_index,
                    bound_turns=0,
                )
        vol.locked_move = None
        vol.locked_kind = None
        vol.locked_turns = 0

    # ------------------------------------------------------------------
    # Checks and rolls
    # ------------------------------------------------------------------
    def _ready_to_act(self, state: TeamPair, side: Side, rng: random.Random, log: EventLog) -> bool:
        team, mon = self._battler(state, side)
        slot = team.active_index
        name = self._name(mon)
        vol = mon.volatile
        if vol.bound_turns > 0:
            log.emit(FAILED_TO_MOVE, f"{name} can't move!", side=side, slot=slot, reason="bound")
            return False
        if mon.status is Status.SLEEP:
            mon.sleep_turns = max(0, mon.sleep_turns - 1)
            if mon.sleep_turns == 0:
                mon.status = None
                log.emit(STATUS_CURED, f"{name} woke up!", side=side, slot=slot, status=None, reason="woke_up")
            else:
                log.emit(
                    FAILED_TO_MOVE,
                    f"{name} is fast asleep.",
                    side=side,
                    slot=slot,
                    reason="sleep",
                    sleep_turns=mon.sleep_turns,
                )
            return False
        if mon.status is Status.FREEZE:
            log.emit(FAILED_TO_MOVE, f"{name} is frozen solid!", side=side, slot=slot, reason="freeze")
            return False
        if vol.confusion_turns > 0:
            vol.confusion_turns -= 1
            if vol.confusion_turns == 0:
                log.emit(VOLATILE, f"{name} snapped out of confusion!", side=side, slot=slot, confusion_turns=0)
            elif rng.random() < CONFUSION_SELF_HIT_CHANCE:
                log.emit(FAILED_TO_MOVE, f"{name} is confused!", side=side, slot=slot, reason="confusion")
                attack = modified_stat(mon.stats.attack, mon.stages.attack)
                defense = modified_stat(mon.stats.defense, mon.stages.defense)
                damage = max(1, base_damage(mon.level, attack, defense, CONFUSION_POWER))
                self._hurt(
                    mon,
                    side,
                    slot,
                    damage,
                    log,
                    reason="confusion",
                    message=f"{name} hurt itself in its confusion!",
                )
                return False
        if mon.status is Status.PARALYSIS and rng.random() < PARALYSIS_SKIP_CHANCE:
            log.emit(FAILED_TO_MOVE, f"{name} is fully paralyzed!", side=side, slot=slot, reason="paralysis")
            return False
        return True

    def _hits(self, attacker: PokemonInstance, defender: PokemonInstance, move: MoveDef, rng: random.Random) -> bool:
        if move.accuracy is None:
            return True
        chance = (move.accuracy / 100) * stage_multiplier(attacker.stages.accuracy)
        chance /= stage_multiplier(defender.stages.evasion)
        if chance >= 1:
            return True
        return rng.random() < chance

    def _critical(self, mon: PokemonInstance, *, high_crit: bool, rng: random.Random) -> bool:
        species = self._catalog.species.get(mon.species)
        base_speed = species.base.speed if species else mon.stats.speed
        threshold = base_speed // 2
        if high_crit:
            threshold = min(255, threshold * 8)
        return rng.randrange(256) < threshold

    def _damage(
        self,
        attacker: PokemonInstance,
        defender: PokemonInstance,
        move_type: str | None,
        power: int,
        *,
        physical: bool,
        critical: bool,
        multiplier: float,
        rng: random.Random,
    ) -> int:
        if physical:
            attack, defense = attacker.stats.attack, defender.stats.defense
            attack_stage, defense_stage = attacker.stages.attack, defender.stages.defense
        else:
            attack, defense = attacker.stats.special, defender.stats.special
            attack_stage, defense_stage = attacker.stages.special, defender.stages.special
        if not critical:
            attack = modified_stat(attack, attack_stage)
            defense = modified_stat(defense, defense_stage)
            if physical and attacker.status is Status.BURN:
                attack = max(1, attack // 2)
        damage = base_damage(attacker.level, attack, defense, power, critical=critical)
        if move_type is not None and move_type in attacker.types:
            damage = damage * 3 // 2
        damage = int(damage * multiplier)
        if damage > 1:
            damage = damage * rng.randint(217, 255) // 255
        return max(1, damage)

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------
    def _inflict(
        self,
        target: PokemonInstance,
        side: Side,
        slot: int | None,
        status: Status,
        rng: random.Random,
        log: EventLog,
        *,
        move: MoveDef,
        primary: bool,
    ) -> None:
        name = self._name(target)
        blocked = (
            target.status is not None
            or _STATUS_TYPE_IMMUNITY.get(status) in target.types
            or (primary and effectiveness(move.type, target.types) == 0)
            or (not primary and move.type in target.types)
        )
        if blocked:
            if primary:
                log.emit(NO_EFFECT, f"It didn't affect {name}.", side=side, slot=slot, move=move.move_id)
            return
        target.status = status
        data: dict[str, object] = {"status": status.value}
        if status is Status.SLEEP:
            target.sleep_turns = rng.randint(1, 7)
            data["sleep_turns"] = target.sleep_turns
        log.emit(STATUS, f"{name} {_STATUS_VERBS[status]}", side=side, slot=slot, **data)

    def _confuse(
        self,
        target: PokemonInstance,
        side: Side,
        slot: int | None,
        rng: random.Random,
        log: EventLog,
        *,
        primary: bool,
    ) -> None:
        if target.volatile.confusion_turns > 0:
            if primary:
                log.emit(NO_EFFECT, f"{self._name(target)} is already confused!", side=side, slot=slot)
            return
        target.volatile.confusion_turns = rng.randint(2, 5)
        log.emit(
            VOLATILE,
            f"{self._name(target)} became confused!",
            side=side,
            slot=slot,
            confusion_turns=target.volatile.confusion_turns,
        )

    def _shift_stage(
        self,
        state: TeamPair,
        side: Side,
        stat: str,
        delta: int,
        log: EventLog,
        *,
        announce_failure: bool,
    ) -> None:
        team = state.team(side)
        mon = team.active
        if mon is None:
            raise EngineFault(f"{side.value} has no active pokemon")
        applied = mon.stages.shift(stat, delta)
        name = self._name(mon)
        if applied == 0:
            if announce_failure:
                direction = "higher" if delta > 0 else "lower"
                log.emit(NO_EFFECT, f"{name}'s {stat} won't go any {direction}!", side=side, slot=team.active_index)
            return
        if applied > 0:
            wording = "sharply rose" if applied > 1 else "rose"
        else:
            wording = "harshly fell" if applied < -1 else "fell"
        log.emit(
            STAT_CHANGE,
            f"{name}'s {stat} {wording}!",
            side=side,
            slot=team.active_index,
            stat=stat,
            stage=mon.stages.get(stat),
            delta=applied,
        )

    def _hurt(
        self,
        mon: PokemonInstance,
        side: Side,
        slot: int | None,
        amount: int,
        log: EventLog,
        *,
        reason: str,
        message: str,
    ) -> int:
        dealt = max(0, min(amount, mon.current_hp))
        mon.current_hp -= dealt
        log.emit(DAMAGE, message, side=side, slot=slot, hp=mon.current_hp, damage=dealt, reason=reason)
        return dealt

    def _restore(
        self,
        mon: PokemonInstance,
        side: Side,
        slot: int | None,
        amount: int,
        log: EventLog,
        *,
        message: str,
    ) -> int:
        gained = max(0, min(amount, mon.max_hp - mon.current_hp))
        if gained == 0:
            return 0
        mon.current_hp += gained
        log.emit(HEAL, message, side=side, slot=slot, hp=mon.current_hp, healed=gained)
        return gained

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _battler(self, state: TeamPair, side: Side) -> tuple[Team, PokemonInstance]:
        team = state.team(side)
        mon = team.active
        if mon is None or mon.is_fainted:
            raise EngineFault(f"{side.value} has no pokemon able to act")
        return team, mon

    def _target(self, state: TeamPair, side: Side) -> tuple[Team, PokemonInstance]:
        team = state.foe(side)
        mon = team.active
        if mon is None or mon.is_fainted:
            raise EngineFault(f"{side.opponent.value} has no pokemon to target")
        return team, mon

    def _move(self, move_id: str) -> MoveDef:
        move = self._catalog.moves.get(move_id)
        if move is None:
            raise EngineFault(f"unknown move '{move_id}'")
        return move

    def _name(self, mon: PokemonInstance) -> str:
        species = self._catalog.species.get(mon.species)
        return species.name if species else mon.species.title()


_STATUS_VERBS = {
    Status.SLEEP: "fell asleep!",
    Status.POISON: "was poisoned!",
    Status.BURN: "was burned!",
    Status.PARALYSIS: "is paralyzed! It may be unable to move!",
    Status.FREEZE: "was frozen solid!",
}


def _roll(chance: int, rng: random.Random) -> bool:
    if chance >= 100:
        return True
    return rng.randint(1, 100) <= chance
