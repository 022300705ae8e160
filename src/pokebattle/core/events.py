"""Battle event records.

Events are the only trace of what happened during a turn.  Any change to HP,
PP, status or stat stages carries the resulting value in ``data`` so a delta
can be replayed against the prior snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .models import Side

__all__ = [
    "BATTLE_ENDED",
    "BATTLE_STARTED",
    "BattleEvent",
    "CRITICAL_HIT",
    "DAMAGE",
    "EFFECTIVENESS",
    "FAILED_TO_MOVE",
    "FAINT",
    "FORFEIT",
    "HEAL",
    "MISS",
    "MOVE_USED",
    "NO_EFFECT",
    "STAT_CHANGE",
    "STATUS",
    "STATUS_CURED",
    "SWITCH_IN",
    "SWITCH_OUT",
    "TURN_STARTED",
    "VOLATILE",
    "EventLog",
]

BATTLE_STARTED = "battle_started"
TURN_STARTED = "turn_started"
MOVE_USED = "move_used"
DAMAGE = "damage"
HEAL = "heal"
MISS = "miss"
CRITICAL_HIT = "critical_hit"
EFFECTIVENESS = "effectiveness"
NO_EFFECT = "no_effect"
FAILED_TO_MOVE = "failed_to_move"
STATUS = "status"
STATUS_CURED = "status_cured"
STAT_CHANGE = "stat_change"
VOLATILE = "volatile"
SWITCH_IN = "switch_in"
SWITCH_OUT = "switch_out"
FAINT = "faint"
FORFEIT = "forfeit"
BATTLE_ENDED = "battle_ended"


@dataclass(frozen=True)
class BattleEvent:
    turn: int
    kind: str
    message: str
    side: Side | None = None
    slot: int | None = None
    data: Mapping[str, Any] = field(default_factory=dict)


class EventLog:
    """Ordered collector used while a turn is being resolved."""

    def __init__(self, turn: int) -> None:
        self.turn = turn
        self._events: list[BattleEvent] = []

    def emit(
        self,
        kind: str,
        message: str,
        *,
        side: Side | None = None,
        slot: int | None = None,
        **data: Any,
    ) -> BattleEvent:
        event = BattleEvent(turn=self.turn, kind=kind, message=message, side=side, slot=slot, data=data)
        self._events.append(event)
        return event

    def extend(self, events: list[BattleEvent]) -> None:
        self._events.extend(events)

    @property
    def events(self) -> list[BattleEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
