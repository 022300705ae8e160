"""Legal-action computation.

The validator is a pure function of the session: calling it twice on the same
snapshot yields the same set, and it never touches the session.
"""

from __future__ import annotations

from ..core.actions import Action, Continue, Forfeit, Struggle, Switch, UseMove, ValidActionSet
from ..core.errors import SessionTerminated
from ..core.models import BattleSession, PokemonInstance, Side, Status

__all__ = ["forced_action", "require_actions", "valid_actions"]


def forced_action(mon: PokemonInstance) -> Action | None:
    """The single action ``mon`` is committed to, if any."""

    vol = mon.volatile
    if vol.recharging or vol.bound_turns > 0:
        return Continue()
    if vol.locked_move is not None:
        return UseMove(vol.locked_move)
    return None


def valid_actions(
    session: BattleSession,
    side: Side,
    *,
    prefilter_incapacitated: bool = False,
) -> ValidActionSet:
    if session.is_ended:
        return frozenset()
    team = session.team(side)
    actions: set[Action] = set()
    if side is Side.PLAYER:
        actions.add(Forfeit())

    active = team.active
    if active is None or active.is_fainted:
        actions.update(Switch(idx) for idx in team.reserve_indices())
        return frozenset(actions)

    forced = forced_action(active)
    if forced is not None:
        actions.add(forced)
        return frozenset(actions)
    if prefilter_incapacitated and active.status in (Status.SLEEP, Status.FREEZE):
        actions.add(Continue())
        return frozenset(actions)

    moves = [UseMove(idx) for idx, slot in enumerate(active.moves) if slot.pp > 0]
    if moves:
        actions.update(moves)
    else:
        actions.add(Struggle())
    actions.update(Switch(idx) for idx in team.reserve_indices())
    return frozenset(actions)


def require_actions(
    session: BattleSession,
    side: Side,
    *,
    prefilter_incapacitated: bool = False,
) -> ValidActionSet:
    """Like :func:`valid_actions` but refuses ended sessions."""

    if session.is_ended:
        raise SessionTerminated(session.session_id)
    return valid_actions(session, side, prefilter_incapacitated=prefilter_incapacitated)
