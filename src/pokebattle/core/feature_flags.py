"""Switchable battle rules.

A few rules are judgement calls rather than settled mechanics: whether a
sleeping pokemon's moves stay in its legal-action set, how speed ties are
broken, and whether forced turns play out automatically.  Each one is a named
flag read from the ``POKEBATTLE_FEATURES`` environment variable
(comma-separated, case-insensitive) and can be flipped for a block of code
with :func:`override`::

    from pokebattle.core import feature_flags

    with feature_flags.override(enable=[feature_flags.SEEDED_TIE_BREAK]):
        ...
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from contextlib import contextmanager
from typing import Final

logger = logging.getLogger(__name__)

_ENV_VAR: Final = "POKEBATTLE_FEATURES"

PREFILTER_INCAPACITATED: Final = "validator.prefilter_incapacitated"
SEEDED_TIE_BREAK: Final = "ordering.seeded_tie_break"
MANUAL_FORCED_TURNS: Final = "resolver.manual_forced_turns"

KNOWN_FLAGS: Final[dict[str, str]] = {
    PREFILTER_INCAPACITATED: "Replace a sleeping/frozen active's moves with a single Continue action.",
    SEEDED_TIE_BREAK: "Break equal priority-and-speed ties with a seeded coin flip instead of player-first.",
    MANUAL_FORCED_TURNS: "Stop after every turn even when the player's next action is forced.",
}

_OVERRIDES: list[tuple[frozenset[str], frozenset[str]]] = []


def _key(flag: str) -> str:
    return flag.strip().lower()


def _from_env() -> set[str]:
    raw = os.getenv(_ENV_VAR) or ""
    flags = {_key(part) for part in raw.split(",") if part.strip()}
    unknown = flags.difference(KNOWN_FLAGS)
    if unknown:
        logger.debug("Ignoring unknown feature flags", extra={"flags": sorted(unknown)})
    return flags & set(KNOWN_FLAGS)


def enabled_flags() -> frozenset[str]:
    """Return every flag currently switched on, overrides applied innermost-last."""

    active = _from_env()
    for enable, disable in _OVERRIDES:
        active |= enable
        active -= disable
    return frozenset(active)


def is_enabled(flag: str) -> bool:
    return _key(flag) in enabled_flags()


@contextmanager
def override(*, enable: Iterable[str] = (), disable: Iterable[str] = ()):
    """Force flags on/off inside the block; nested blocks win over outer ones."""

    entry = (frozenset(_key(flag) for flag in enable), frozenset(_key(flag) for flag in disable))
    _OVERRIDES.append(entry)
    try:
        yield
    finally:
        _OVERRIDES.pop()


def set_env_flags(flags: Iterable[str]) -> None:
    """Write ``flags`` to the environment variable (scripts and tests)."""

    os.environ[_ENV_VAR] = ",".join(sorted({_key(flag) for flag in flags}))
