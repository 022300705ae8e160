from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

from ..core.errors import ValidationError
from ..core.models import (
    MAX_MOVES,
    MAX_TEAM_SIZE,
    Difficulty,
    MoveSlot,
    NPCProfile,
    PokemonInstance,
    RosterEntry,
    Stats,
    Team,
)

__all__ = [
    "Catalog",
    "MoveDef",
    "MoveEffect",
    "PrefabTeam",
    "SpeciesDef",
    "build_pokemon",
    "build_team",
    "compute_stats",
    "load_catalog",
]

_DATA_DIR = Path(__file__).parent
TYPES = (
    "normal",
    "fire",
    "water",
    "electric",
    "grass",
    "ice",
    "fighting",
    "poison",
    "ground",
    "flying",
    "psychic",
    "bug",
    "rock",
    "ghost",
    "dragon",
)
SPECIAL_TYPES = frozenset({"fire", "water", "electric", "grass", "ice", "psychic", "dragon"})


@dataclass(frozen=True)
class SpeciesDef:
    species_id: str
    name: str
    types: tuple[str, ...]
    base: Stats


@dataclass(frozen=True)
class MoveEffect:
    """Secondary behaviour attached to a move.

    ``kind`` is one of ``status``, ``stat``, ``confuse``, ``recoil``, ``drain``,
    ``heal``, ``recharge``, ``charge``, ``bind`` or ``fixed``.  ``chance`` is a
    percentage; 100 for effects that always apply when the move lands.
    """

    kind: str
    chance: int = 100
    status: str | None = None
    stat: str | None = None
    stages: int = 0
    target: str = "foe"
    fraction: float = 0.0
    damage: int | str | None = None


@dataclass(frozen=True)
class MoveDef:
    move_id: str
    name: str
    type: str
    power: int
    accuracy: int | None
    pp: int
    priority: int = 0
    high_crit: bool = False
    effect: MoveEffect | None = None

    @property
    def category(self) -> str:
        if self.power == 0:
            return "status"
        return "special" if self.type in SPECIAL_TYPES else "physical"

    @property
    def is_damaging(self) -> bool:
        return self.power > 0

    @property
    def effect_kind(self) -> str | None:
        return self.effect.kind if self.effect else None


@dataclass(frozen=True)
class PrefabTeam:
    team_id: str
    name: str
    description: str
    members: tuple[RosterEntry, ...]


def compute_stats(base: Stats, level: int) -> Stats:
    """Stats at ``level`` for a pokemon with no training bonuses."""

    def _stat(value: int) -> int:
        return (2 * value * level) // 100 + 5

    return Stats(
        hp=(2 * base.hp * level) // 100 + level + 10,
        attack=_stat(base.attack),
        defense=_stat(base.defense),
        special=_stat(base.special),
        speed=_stat(base.speed),
    )


class Catalog:
    """Read-only lookups for species, moves, prefab teams and NPC opponents."""

    def __init__(
        self,
        species: Mapping[str, SpeciesDef],
        moves: Mapping[str, MoveDef],
        teams: Mapping[str, PrefabTeam],
        opponents: Mapping[str, NPCProfile],
    ) -> None:
        self.species = MappingProxyType(dict(species))
        self.moves = MappingProxyType(dict(moves))
        self.teams = MappingProxyType(dict(teams))
        self.opponents = MappingProxyType(dict(opponents))

    @classmethod
    def from_directory(cls, directory: Path) -> Catalog:
        species = {key: _parse_species(key, value) for key, value in _load_json(directory / "species.json").items()}
        moves = {key: _parse_move(key, value) for key, value in _load_json(directory / "moves.json").items()}
        teams = {key: _parse_team(key, value) for key, value in _load_json(directory / "teams.json").items()}
        opponents = {key: _parse_opponent(key, value) for key, value in _load_json(directory / "opponents.json").items()}
        catalog = cls(species, moves, teams, opponents)
        for team in teams.values():
            catalog._check_roster(team.members, owner=team.team_id)
        for profile in opponents.values():
            catalog._check_roster(profile.roster, owner=profile.profile_id)
        return catalog

    def _check_roster(self, roster: Iterable[RosterEntry], *, owner: str) -> None:
        for entry in roster:
            if entry.species not in self.species:
                raise ValidationError(f"{owner}: unknown species '{entry.species}'")
            for move_id in entry.moves:
                if move_id not in self.moves:
                    raise ValidationError(f"{owner}: unknown move '{move_id}'")

    def species_def(self, species_id: str) -> SpeciesDef:
        try:
            return self.species[species_id]
        except KeyError:
            raise ValidationError(f"unknown species '{species_id}'") from None

    def move(self, move_id: str) -> MoveDef:
        try:
            return self.moves[move_id]
        except KeyError:
            raise ValidationError(f"unknown move '{move_id}'") from None

    def team(self, team_id: str) -> PrefabTeam:
        try:
            return self.teams[team_id]
        except KeyError:
            raise ValidationError(f"unknown team '{team_id}'") from None

    def opponent(self, opponent_id: str) -> NPCProfile:
        try:
            return self.opponents[opponent_id]
        except KeyError:
            raise ValidationError(f"unknown opponent '{opponent_id}'") from None


def build_pokemon(catalog: Catalog, species_id: str, level: int, move_ids: Iterable[str]) -> PokemonInstance:
    species = catalog.species_def(species_id)
    moves = [catalog.move(move_id) for move_id in move_ids]
    if not 1 <= len(moves) <= MAX_MOVES:
        raise ValidationError(f"{species_id}: a pokemon needs between 1 and {MAX_MOVES} moves")
    if not 1 <= level <= 100:
        raise ValidationError(f"{species_id}: level {level} outside 1..100")
    stats = compute_stats(species.base, level)
    return PokemonInstance(
        species=species.species_id,
        level=level,
        types=species.types,
        stats=stats,
        current_hp=stats.hp,
        moves=[MoveSlot(move_id=move.move_id, pp=move.pp, max_pp=move.pp) for move in moves],
    )


def build_team(catalog: Catalog, roster: Iterable[RosterEntry]) -> Team:
    members = [build_pokemon(catalog, entry.species, entry.level, entry.moves) for entry in roster]
    if not 1 <= len(members) <= MAX_TEAM_SIZE:
        raise ValidationError(f"a team needs between 1 and {MAX_TEAM_SIZE} pokemon")
    return Team(members=members, active_index=0)


@lru_cache(maxsize=1)
def load_catalog() -> Catalog:
    """Return the bundled catalog, parsed once per process."""

    return Catalog.from_directory(_DATA_DIR)


def _load_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValidationError(f"invalid catalog payload in {path.name}")
    return data


def _parse_species(species_id: str, raw: Mapping[str, Any]) -> SpeciesDef:
    types = tuple(raw["types"])
    unknown = [name for name in types if name not in TYPES]
    if unknown:
        raise ValidationError(f"{species_id}: unknown types {unknown}")
    return SpeciesDef(species_id=species_id, name=raw["name"], types=types, base=Stats(**raw["base"]))


def _parse_move(move_id: str, raw: Mapping[str, Any]) -> MoveDef:
    if raw["type"] not in TYPES:
        raise ValidationError(f"{move_id}: unknown type '{raw['type']}'")
    effect_raw = raw.get("effect")
    effect = MoveEffect(**effect_raw) if effect_raw else None
    return MoveDef(
        move_id=move_id,
        name=raw["name"],
        type=raw["type"],
        power=int(raw["power"]),
        accuracy=raw.get("accuracy"),
        pp=int(raw["pp"]),
        priority=int(raw.get("priority", 0)),
        high_crit=bool(raw.get("high_crit", False)),
        effect=effect,
    )


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _parse_roster(raw: Iterable[Mapping[str, Any]]) -> tuple[RosterEntry, ...]:
    return tuple(
        RosterEntry(species=entry["species"], level=int(entry["level"]), moves=tuple(entry["moves"])) for entry in raw
    )


def _parse_team(team_id: str, raw: Mapping[str, Any]) -> PrefabTeam:
    return PrefabTeam(
        team_id=team_id,
        name=raw.get("name", team_id),
        description=raw.get("description", ""),
        members=_parse_roster(raw["members"]),
    )


def _parse_opponent(profile_id: str, raw: Mapping[str, Any]) -> NPCProfile:
    return NPCProfile(
        profile_id=profile_id,
        name=raw["name"],
        difficulty=Difficulty(raw["difficulty"]),
        aggression=float(raw.get("aggression", 0.7)),
        switch_hp_fraction=float(raw.get("switch_hp_fraction", 0.25)),
        lookahead_depth=_optional_int(raw.get("lookahead_depth")),
        description=raw.get("description", ""),
        roster=_parse_roster(raw["roster"]),
    )
