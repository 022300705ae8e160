"""Bundled reference data: species, moves, prefab teams and NPC opponents."""

from .catalog import Catalog, MoveDef, MoveEffect, PrefabTeam, SpeciesDef, build_pokemon, build_team, load_catalog

__all__ = [
    "Catalog",
    "MoveDef",
    "MoveEffect",
    "PrefabTeam",
    "SpeciesDef",
    "build_pokemon",
    "build_team",
    "load_catalog",
]
