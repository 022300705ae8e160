"""Gen-1 type effectiveness.

The table keeps the first generation's quirks: Ghost moves do nothing to
Psychic types, Ice is neutral against Fire, and Bug and Poison hit each other
super-effectively.
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = ["CHART", "effectiveness", "label_for"]

CHART: dict[str, dict[str, float]] = {
    "normal": {"rock": 0.5, "ghost": 0.0},
    "fire": {"fire": 0.5, "water": 0.5, "grass": 2.0, "ice": 2.0, "bug": 2.0, "rock": 0.5, "dragon": 0.5},
    "water": {"fire": 2.0, "water": 0.5, "grass": 0.5, "ground": 2.0, "rock": 2.0, "dragon": 0.5},
    "electric": {"water": 2.0, "electric": 0.5, "grass": 0.5, "ground": 0.0, "flying": 2.0, "dragon": 0.5},
    "grass": {
        "fire": 0.5,
        "water": 2.0,
        "grass": 0.5,
        "poison": 0.5,
        "ground": 2.0,
        "flying": 0.5,
        "bug": 0.5,
        "rock": 2.0,
        "dragon": 0.5,
    },
    "ice": {"water": 0.5, "grass": 2.0, "ice": 0.5, "ground": 2.0, "flying": 2.0, "dragon": 2.0},
    "fighting": {
        "normal": 2.0,
        "ice": 2.0,
        "poison": 0.5,
        "flying": 0.5,
        "psychic": 0.5,
        "bug": 0.5,
        "rock": 2.0,
        "ghost": 0.0,
    },
    "poison": {"grass": 2.0, "poison": 0.5, "ground": 0.5, "bug": 2.0, "rock": 0.5, "ghost": 0.5},
    "ground": {"fire": 2.0, "electric": 2.0, "grass": 0.5, "poison": 2.0, "flying": 0.0, "bug": 0.5, "rock": 2.0},
    "flying": {"electric": 0.5, "grass": 2.0, "fighting": 2.0, "bug": 2.0, "rock": 0.5},
    "psychic": {"fighting": 2.0, "poison": 2.0, "psychic": 0.5},
    "bug": {"fire": 0.5, "grass": 2.0, "fighting": 0.5, "poison": 2.0, "flying": 0.5, "psychic": 2.0, "ghost": 0.5},
    "rock": {"fire": 2.0, "ice": 2.0, "fighting": 0.5, "ground": 0.5, "flying": 2.0, "bug": 2.0},
    "ghost": {"normal": 0.0, "psychic": 0.0, "ghost": 2.0},
    "dragon": {"dragon": 2.0},
}


def effectiveness(move_type: str | None, defender_types: Iterable[str]) -> float:
    """Combined multiplier of ``move_type`` against every defending type.

    ``None`` is the typeless case (Struggle, confusion self-hits) and is always
    neutral.
    """

    if move_type is None:
        return 1.0
    row = CHART.get(move_type, {})
    multiplier = 1.0
    for defender in defender_types:
        multiplier *= row.get(defender, 1.0)
    return multiplier


def label_for(multiplier: float) -> str:
    if multiplier == 0:
        return "no effect"
    if multiplier > 1:
        return "super effective"
    if multiplier < 1:
        return "not very effective"
    return "neutral"
