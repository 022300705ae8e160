from __future__ import annotations

import random
from collections.abc import Callable, Sequence

from ..core.actions import Action, Switch, UseMove
from ..core.models import Side, TeamPair
from ..core.settings import TieBreak
from ..mechanics.stats import effective_speed

__all__ = ["action_rank", "order_actions"]


def action_rank(pair: TeamPair, side: Side, action: Action, priority_of: Callable[[str], int]) -> tuple[int, int, int]:
    """Sort key, larger first: (switch bracket, move priority, effective speed)."""

    if isinstance(action, Switch):
        return (1, 0, 0)
    mon = pair.team(side).active
    if mon is None:
        return (0, 0, 0)
    priority = 0
    if isinstance(action, UseMove) and 0 <= action.index < len(mon.moves):
        priority = priority_of(mon.moves[action.index].move_id)
    return (0, priority, effective_speed(mon))


def order_actions(
    pair: TeamPair,
    planned: Sequence[tuple[Side, Action]],
    *,
    priority_of: Callable[[str], int],
    tie_break: TieBreak = TieBreak.PLAYER_FIRST,
    rng: random.Random | None = None,
) -> list[tuple[Side, Action]]:
    """Order one action per side for resolution.

    Switches always go first, then higher move priority, then higher
    effective speed.  A full tie falls back to ``tie_break``; the seeded policy
    draws from ``rng`` only when a tie actually occurs.
    """

    if len(planned) < 2:
        return list(planned)
    if len(planned) > 2:
        raise ValueError("ordering supports one action per side")
    first, second = planned
    rank_first = action_rank(pair, first[0], first[1], priority_of)
    rank_second = action_rank(pair, second[0], second[1], priority_of)
    if rank_first != rank_second:
        return [first, second] if rank_first > rank_second else [second, first]

    player_entry, npc_entry = (first, second) if first[0] is Side.PLAYER else (second, first)
    if tie_break is TieBreak.PLAYER_FIRST:
        return [player_entry, npc_entry]
    if rng is None:
        raise ValueError("seeded tie-break requires an rng")
    return [player_entry, npc_entry] if rng.random() < 0.5 else [npc_entry, player_entry]
