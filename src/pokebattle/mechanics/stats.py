from __future__ import annotations

import math

from ..core.models import PokemonInstance, Status

__all__ = [
    "base_damage",
    "effective_speed",
    "expected_damage",
    "modified_stat",
    "stage_multiplier",
]

RANDOM_MIN = 217
RANDOM_MAX = 255


def stage_multiplier(stage: int) -> float:
    if stage >= 0:
        return (2 + stage) / 2
    return 2 / (2 - stage)


def modified_stat(value: int, stage: int) -> int:
    return max(1, math.floor(value * stage_multiplier(stage)))


def effective_speed(mon: PokemonInstance) -> int:
    speed = modified_stat(mon.stats.speed, mon.stages.speed)
    if mon.status is Status.PARALYSIS:
        speed = max(1, speed // 4)
    return speed


def base_damage(level: int, attack: int, defense: int, power: int, *, critical: bool = False) -> int:
    """Damage before STAB, type and random modifiers.

    Attack and defense above 255 are both scaled down by four, as the
    original cartridges do to keep the intermediate values in a byte.
    """

    if attack > 255 or defense > 255:
        attack = max(1, attack // 4)
        defense = max(1, defense // 4)
    effective_level = level * 2 if critical else level
    return (((2 * effective_level) // 5 + 2) * attack * power // max(1, defense)) // 50 + 2


def expected_damage(
    level: int,
    attack: int,
    defense: int,
    power: int,
    *,
    stab: bool = False,
    multiplier: float = 1.0,
) -> int:
    """Average non-critical damage, used for planning rather than resolution."""

    if multiplier == 0 or power <= 0:
        return 0
    damage = base_damage(level, attack, defense, power)
    if stab:
        damage = damage * 3 // 2
    damage = int(damage * multiplier)
    damage = damage * ((RANDOM_MIN + RANDOM_MAX) // 2) // RANDOM_MAX
    return max(1, damage)
