"""Action requests a side can submit during a battle."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from .errors import ValidationError

__all__ = [
    "Action",
    "Continue",
    "Forfeit",
    "Struggle",
    "Switch",
    "UseMove",
    "ValidActionSet",
    "action_from_dict",
    "action_to_dict",
    "describe_action",
    "sorted_actions",
]


@dataclass(frozen=True)
class UseMove:
    index: int


@dataclass(frozen=True)
class Switch:
    index: int


@dataclass(frozen=True)
class Forfeit:
    pass


@dataclass(frozen=True)
class Struggle:
    """Fallback attack injected when every move is out of PP."""


@dataclass(frozen=True)
class Continue:
    """Spend the turn on a forced condition (recharging, trapped by a bind)."""


Action = Union[UseMove, Switch, Forfeit, Struggle, Continue]
ValidActionSet = frozenset

_KINDS: dict[str, type] = {
    "move": UseMove,
    "switch": Switch,
    "forfeit": Forfeit,
    "struggle": Struggle,
    "continue": Continue,
}
_NAMES = {cls: name for name, cls in _KINDS.items()}
_ORDER = {"move": 0, "struggle": 1, "continue": 2, "switch": 3, "forfeit": 4}


def action_to_dict(action: Action) -> dict[str, Any]:
    kind = _NAMES[type(action)]
    payload: dict[str, Any] = {"kind": kind}
    if isinstance(action, (UseMove, Switch)):
        payload["index"] = action.index
    return payload


def action_from_dict(data: Mapping[str, Any]) -> Action:
    kind = str(data.get("kind", "")).strip().lower()
    cls = _KINDS.get(kind)
    if cls is None:
        raise ValidationError(f"unknown action kind '{kind}'")
    if cls in (UseMove, Switch):
        index = data.get("index")
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError(f"action '{kind}' requires an integer index")
        return cls(index)
    return cls()


def describe_action(action: Action) -> str:
    if isinstance(action, UseMove):
        return f"move #{action.index}"
    if isinstance(action, Switch):
        return f"switch to slot {action.index}"
    return _NAMES[type(action)]


def sorted_actions(actions: Iterable[Action]) -> list[Action]:
    """Stable presentation order: moves by index, then fallbacks, switches, forfeit."""

    def _key(action: Action) -> tuple[int, int]:
        index = getattr(action, "index", 0)
        return _ORDER[_NAMES[type(action)]], index

    return sorted(actions, key=_key)
