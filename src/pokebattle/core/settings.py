from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from . import feature_flags

__all__ = ["BattleSettings", "TieBreak"]


class TieBreak(str, Enum):
    """How two actions with equal priority and equal effective speed are ordered."""

    PLAYER_FIRST = "player_first"
    SEEDED = "seeded"


@dataclass(frozen=True)
class BattleSettings:
    """Rules knobs shared by the validator, the resolver and the service."""

    tie_break: TieBreak = TieBreak.PLAYER_FIRST
    prefilter_incapacitated: bool = False
    auto_advance_forced: bool = True
    max_ticks: int = 100
    max_conflict_retries: int = 3

    @classmethod
    def from_flags(cls, **overrides: object) -> BattleSettings:
        settings = cls(
            tie_break=TieBreak.SEEDED if feature_flags.is_enabled(feature_flags.SEEDED_TIE_BREAK) else TieBreak.PLAYER_FIRST,
            prefilter_incapacitated=feature_flags.is_enabled(feature_flags.PREFILTER_INCAPACITATED),
            auto_advance_forced=not feature_flags.is_enabled(feature_flags.MANUAL_FORCED_TURNS),
        )
        if overrides:
            settings = replace(settings, **overrides)
        return settings
