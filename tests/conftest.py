from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

# Ensure "src" is on sys.path for imports in tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from pokebattle.battle.lifecycle import SessionLifecycleManager  # noqa: E402
from pokebattle.core.models import Team  # noqa: E402
from pokebattle.data.catalog import build_pokemon, load_catalog  # noqa: E402


class QuietRandom(random.Random):
    """Deterministic stand-in for the engine's RNG.

    ``random()`` always returns ``roll`` (0.5 hits anything at 55%+ accuracy and
    never triggers full paralysis or a confusion self-hit), ``randrange`` never
    rolls a critical hit, and ``randint`` returns either end of its range.
    With ``high=True`` secondary effects never trigger and damage rolls max out;
    with ``high=False`` every secondary effect triggers and durations are minimal.
    """

    def __init__(self, *, high: bool = True, roll: float = 0.5) -> None:
        self._high = high
        self._roll = roll
        super().__init__(0)

    def random(self) -> float:
        return self._roll

    def randint(self, a: int, b: int) -> int:
        return b if self._high else a

    def randrange(self, start, stop=None, step=1):  # type: ignore[override]
        upper = start if stop is None else stop
        return upper - 1

    def choices(self, population, weights=None, *, cum_weights=None, k=1):  # type: ignore[override]
        return [population[0]] * k


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def quiet_rng():
    return QuietRandom


@pytest.fixture
def make_team(catalog):
    """Build a team from ``(species, level, [moves])`` tuples; optional 4th item sets current HP."""

    def _make(specs) -> Team:
        members = []
        for spec in specs:
            species, level, moves = spec[0], spec[1], spec[2]
            mon = build_pokemon(catalog, species, level, moves)
            if len(spec) > 3:
                mon.current_hp = spec[3]
            members.append(mon)
        return Team(members=members, active_index=0)

    return _make


@pytest.fixture
def make_session(catalog, make_team):
    """Create a fresh session between two custom teams, piloted by the easy NPC profile."""

    lifecycle = SessionLifecycleManager(catalog)

    def _make(player, npc, *, seed: int = 7, opponent_id: str = "gym_leader_easy", session_id: str | None = None):
        return lifecycle.create(
            make_team(player),
            catalog.opponent(opponent_id),
            player_id="tester",
            npc_team=make_team(npc),
            seed=seed,
            session_id=session_id,
        )

    return _make
