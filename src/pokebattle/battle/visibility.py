"""Side-scoped projections of a battle session.

A side sees its own team in full.  Of the opposing team it sees the active
pokemon's species, level, HP, status, stat stages and the moves it has used
(never their PP), the benched pokemon that have already been sent out (no
moves at all), and only a count of the ones it has not met yet.  The NPC
policy receives the same projection as the player, so it cannot peek at
hidden information.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.models import BattleSession, Outcome, Phase, PokemonInstance, Side, Stats, Status
from .validator import valid_actions

__all__ = ["BattleView", "MoveView", "PokemonView", "view_for"]


@dataclass(frozen=True)
class MoveView:
    index: int
    move_id: str
    pp: int | None = None
    max_pp: int | None = None


@dataclass(frozen=True)
class PokemonView:
    slot: int
    species: str
    level: int
    types: tuple[str, ...]
    hp: int
    max_hp: int
    status: Status | None
    active: bool
    stages: dict[str, int] | None = None
    moves: tuple[MoveView, ...] = ()
    stats: Stats | None = None

    @property
    def fainted(self) -> bool:
        return self.hp <= 0

    @property
    def hp_fraction(self) -> float:
        return self.hp / self.max_hp if self.max_hp else 0.0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "slot": self.slot,
            "species": self.species,
            "level": self.level,
            "types": list(self.types),
            "hp": self.hp,
            "max_hp": self.max_hp,
            "status": self.status.value if self.status else None,
            "active": self.active,
            "fainted": self.fainted,
            "moves": [
                {key: value for key, value in vars(move).items() if value is not None} for move in self.moves
            ],
        }
        if self.stages is not None:
            payload["stages"] = dict(self.stages)
        if self.stats is not None:
            payload["stats"] = vars(self.stats).copy()
        return payload


@dataclass(frozen=True)
class BattleView:
    session_id: str
    side: Side
    turn: int
    phase: Phase
    outcome: Outcome | None
    version: int
    own_team: tuple[PokemonView, ...]
    own_active_index: int | None
    opponent_active: PokemonView | None
    opponent_bench: tuple[PokemonView, ...]
    opponent_unrevealed: int
    opponent_team_size: int
    can_act: bool

    @property
    def own_active(self) -> PokemonView | None:
        if self.own_active_index is None:
            return None
        return self.own_team[self.own_active_index]

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "side": self.side.value,
            "turn": self.turn,
            "phase": self.phase.value,
            "outcome": self.outcome.value if self.outcome else None,
            "version": self.version,
            "own_team": [mon.to_dict() for mon in self.own_team],
            "own_active_index": self.own_active_index,
            "opponent_active": self.opponent_active.to_dict() if self.opponent_active else None,
            "opponent_bench": [mon.to_dict() for mon in self.opponent_bench],
            "opponent_unrevealed": self.opponent_unrevealed,
            "opponent_team_size": self.opponent_team_size,
            "can_act": self.can_act,
        }


def _own(slot: int, mon: PokemonInstance, active: bool) -> PokemonView:
    return PokemonView(
        slot=slot,
        species=mon.species,
        level=mon.level,
        types=mon.types,
        hp=mon.current_hp,
        max_hp=mon.max_hp,
        status=mon.status,
        active=active,
        stages=mon.stages.as_dict(),
        moves=tuple(
            MoveView(index=idx, move_id=move.move_id, pp=move.pp, max_pp=move.max_pp)
            for idx, move in enumerate(mon.moves)
        ),
        stats=mon.stats,
    )


def _opponent(slot: int, mon: PokemonInstance, active: bool) -> PokemonView:
    moves: tuple[MoveView, ...] = ()
    stages = None
    if active:
        stages = mon.stages.as_dict()
        moves = tuple(
            MoveView(index=idx, move_id=mon.moves[idx].move_id) for idx in sorted(mon.revealed_moves)
        )
    return PokemonView(
        slot=slot,
        species=mon.species,
        level=mon.level,
        types=mon.types,
        hp=mon.current_hp,
        max_hp=mon.max_hp,
        status=mon.status,
        active=active,
        stages=stages,
        moves=moves,
    )


def view_for(session: BattleSession, side: Side, *, prefilter_incapacitated: bool = False) -> BattleView:
    own = session.team(side)
    foe = session.team(side.opponent)
    foe_active = foe.active
    bench = tuple(
        _opponent(idx, mon, active=False)
        for idx, mon in enumerate(foe.members)
        if mon.revealed and idx != foe.active_index
    )
    revealed = sum(1 for mon in foe.members if mon.revealed)
    can_act = bool(valid_actions(session, side, prefilter_incapacitated=prefilter_incapacitated))
    return BattleView(
        session_id=session.session_id,
        side=side,
        turn=session.turn,
        phase=session.phase,
        outcome=session.outcome,
        version=session.version,
        own_team=tuple(_own(idx, mon, idx == own.active_index) for idx, mon in enumerate(own.members)),
        own_active_index=own.active_index,
        opponent_active=_opponent(foe.active_index, foe_active, active=True) if foe_active is not None else None,
        opponent_bench=bench,
        opponent_unrevealed=len(foe.members) - revealed,
        opponent_team_size=len(foe.members),
        can_act=can_act,
    )
