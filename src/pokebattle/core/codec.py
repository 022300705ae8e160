"""JSON-safe snapshots of :class:`BattleSession`.

The store keeps sessions as opaque serialized snapshots; this module is the
only place that knows how a session maps to plain dicts and back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from .errors import ValidationError
from .events import BattleEvent
from .models import (
    BattleSession,
    MoveSlot,
    Outcome,
    Phase,
    PokemonInstance,
    Side,
    StatStages,
    Stats,
    Status,
    Team,
    Volatile,
)

__all__ = [
    "event_from_dict",
    "event_to_dict",
    "pokemon_from_dict",
    "pokemon_to_dict",
    "session_from_dict",
    "session_to_dict",
]

SNAPSHOT_FORMAT = 1


def pokemon_to_dict(mon: PokemonInstance) -> dict[str, Any]:
    vol = mon.volatile
    return {
        "species": mon.species,
        "level": mon.level,
        "types": list(mon.types),
        "stats": {
            "hp": mon.stats.hp,
            "attack": mon.stats.attack,
            "defense": mon.stats.defense,
            "special": mon.stats.special,
            "speed": mon.stats.speed,
        },
        "current_hp": mon.current_hp,
        "moves": [{"move_id": slot.move_id, "pp": slot.pp, "max_pp": slot.max_pp} for slot in mon.moves],
        "status": mon.status.value if mon.status else None,
        "sleep_turns": mon.sleep_turns,
        "stages": mon.stages.as_dict(),
        "volatile": {
            "confusion_turns": vol.confusion_turns,
            "recharging": vol.recharging,
            "locked_move": vol.locked_move,
            "locked_kind": vol.locked_kind,
            "locked_turns": vol.locked_turns,
            "bound_turns": vol.bound_turns,
        },
        "revealed": mon.revealed,
        "revealed_moves": list(mon.revealed_moves),
    }


def pokemon_from_dict(data: Mapping[str, Any]) -> PokemonInstance:
    status = data.get("status")
    return PokemonInstance(
        species=data["species"],
        level=int(data["level"]),
        types=tuple(data["types"]),
        stats=Stats(**data["stats"]),
        current_hp=int(data["current_hp"]),
        moves=[MoveSlot(**slot) for slot in data["moves"]],
        status=Status(status) if status else None,
        sleep_turns=int(data.get("sleep_turns", 0)),
        stages=StatStages(**data.get("stages", {})),
        volatile=Volatile(**data.get("volatile", {})),
        revealed=bool(data.get("revealed", False)),
        revealed_moves=list(data.get("revealed_moves", [])),
    )


def _team_to_dict(team: Team) -> dict[str, Any]:
    return {"active_index": team.active_index, "members": [pokemon_to_dict(mon) for mon in team.members]}


def _team_from_dict(data: Mapping[str, Any]) -> Team:
    return Team(members=[pokemon_from_dict(mon) for mon in data["members"]], active_index=data.get("active_index"))


def event_to_dict(event: BattleEvent) -> dict[str, Any]:
    return {
        "turn": event.turn,
        "kind": event.kind,
        "message": event.message,
        "side": event.side.value if event.side else None,
        "slot": event.slot,
        "data": _plain(event.data),
    }


def event_from_dict(data: Mapping[str, Any]) -> BattleEvent:
    side = data.get("side")
    return BattleEvent(
        turn=int(data["turn"]),
        kind=data["kind"],
        message=data.get("message", ""),
        side=Side(side) if side else None,
        slot=data.get("slot"),
        data=dict(data.get("data") or {}),
    )


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, (Side, Phase, Outcome, Status)):
        return value.value
    return value


def session_to_dict(session: BattleSession) -> dict[str, Any]:
    return {
        "format": SNAPSHOT_FORMAT,
        "session_id": session.session_id,
        "player_id": session.player_id,
        "npc_profile_id": session.npc_profile_id,
        "player_team": _team_to_dict(session.player_team),
        "npc_team": _team_to_dict(session.npc_team),
        "seed": session.seed,
        "turn": session.turn,
        "phase": session.phase.value,
        "outcome": session.outcome.value if session.outcome else None,
        "events": [event_to_dict(event) for event in session.events],
        "version": session.version,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
    }


def session_from_dict(data: Mapping[str, Any]) -> BattleSession:
    if data.get("format") != SNAPSHOT_FORMAT:
        raise ValidationError(f"unsupported snapshot format {data.get('format')!r}")
    try:
        outcome = data.get("outcome")
        return BattleSession(
            session_id=data["session_id"],
            player_id=data["player_id"],
            npc_profile_id=data["npc_profile_id"],
            player_team=_team_from_dict(data["player_team"]),
            npc_team=_team_from_dict(data["npc_team"]),
            seed=int(data["seed"]),
            turn=int(data["turn"]),
            phase=Phase(data["phase"]),
            outcome=Outcome(outcome) if outcome else None,
            events=[event_from_dict(event) for event in data.get("events", [])],
            version=int(data["version"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"malformed session snapshot: {exc}") from exc
