from __future__ import annotations

import random
from typing import Protocol, runtime_checkable

from ..core.actions import Action
from ..core.events import BattleEvent
from ..core.models import Side, TeamPair

__all__ = ["MechanicsEngine"]


@runtime_checkable
class MechanicsEngine(Protocol):
    """Pure battle math consumed by the turn resolver.

    Implementations never mutate the ``TeamPair`` they are given; they return
    a new one with the events describing every change.  Input the engine
    cannot make sense of raises :class:`~pokebattle.core.errors.EngineFault`.
    """

    def resolve_action(
        self,
        state: TeamPair,
        side: Side,
        action: Action,
        rng: random.Random,
    ) -> tuple[TeamPair, list[BattleEvent]]: ...

    def apply_end_of_turn(self, state: TeamPair, rng: random.Random) -> tuple[TeamPair, list[BattleEvent]]: ...

    def move_priority(self, move_id: str) -> int: ...
