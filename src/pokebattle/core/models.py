"""Battle domain model shared by the orchestrator, the engine and the store.

Everything here is plain dataclasses so a whole session can be deep-copied,
snapshotted by :mod:`pokebattle.core.codec` and handed to the mechanics engine
without any hidden references.  The resolver never mutates the session it is
given; it works on a copy and returns that copy as the new snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from .events import BattleEvent

__all__ = [
    "Difficulty",
    "MAX_MOVES",
    "MAX_STAGE",
    "MAX_TEAM_SIZE",
    "MIN_STAGE",
    "MoveSlot",
    "NPCProfile",
    "Outcome",
    "Phase",
    "PokemonInstance",
    "RosterEntry",
    "STAGE_NAMES",
    "Side",
    "StatStages",
    "Stats",
    "Status",
    "Team",
    "TeamPair",
    "BattleSession",
    "Volatile",
    "utcnow",
]

MAX_TEAM_SIZE = 6
MAX_MOVES = 4
MIN_STAGE = -6
MAX_STAGE = 6
STAGE_NAMES = ("attack", "defense", "special", "speed", "accuracy", "evasion")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Side(str, Enum):
    PLAYER = "player"
    NPC = "npc"

    @property
    def opponent(self) -> Side:
        return Side.NPC if self is Side.PLAYER else Side.PLAYER


class Phase(str, Enum):
    WAITING_FOR_PLAYER_ACTION = "waiting_for_player_action"
    RESOLVING_TURN = "resolving_turn"
    ENDED = "ended"


class Outcome(str, Enum):
    PLAYER_WINS = "player_wins"
    NPC_WINS = "npc_wins"
    DRAW = "draw"

    @classmethod
    def winner(cls, side: Side) -> Outcome:
        return cls.PLAYER_WINS if side is Side.PLAYER else cls.NPC_WINS


class Status(str, Enum):
    SLEEP = "sleep"
    POISON = "poison"
    BURN = "burn"
    PARALYSIS = "paralysis"
    FREEZE = "freeze"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class Stats:
    hp: int
    attack: int
    defense: int
    special: int
    speed: int


@dataclass
class StatStages:
    attack: int = 0
    defense: int = 0
    special: int = 0
    speed: int = 0
    accuracy: int = 0
    evasion: int = 0

    def get(self, name: str) -> int:
        if name not in STAGE_NAMES:
            raise KeyError(f"unknown stat stage '{name}'")
        return getattr(self, name)

    def shift(self, name: str, delta: int) -> int:
        """Move ``name`` by ``delta`` inside [-6, +6]; return the applied change."""

        current = self.get(name)
        updated = max(MIN_STAGE, min(MAX_STAGE, current + delta))
        setattr(self, name, updated)
        return updated - current

    def as_dict(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in STAGE_NAMES}

    def is_neutral(self) -> bool:
        return all(getattr(self, name) == 0 for name in STAGE_NAMES)


@dataclass
class Volatile:
    """Transient per-battler flags, wiped when the pokemon leaves the field."""

    confusion_turns: int = 0
    recharging: bool = False
    locked_move: int | None = None
    locked_kind: str | None = None  # "charge" | "bind"
    locked_turns: int = 0
    bound_turns: int = 0

    def is_clear(self) -> bool:
        return self == Volatile()


@dataclass
class MoveSlot:
    move_id: str
    pp: int
    max_pp: int


@dataclass
class PokemonInstance:
    species: str
    level: int
    types: tuple[str, ...]
    stats: Stats
    current_hp: int
    moves: list[MoveSlot]
    status: Status | None = None
    sleep_turns: int = 0
    stages: StatStages = field(default_factory=StatStages)
    volatile: Volatile = field(default_factory=Volatile)
    revealed: bool = False
    revealed_moves: list[int] = field(default_factory=list)

    @property
    def max_hp(self) -> int:
        return self.stats.hp

    @property
    def is_fainted(self) -> bool:
        return self.current_hp <= 0

    @property
    def hp_fraction(self) -> float:
        return self.current_hp / self.max_hp if self.max_hp else 0.0

    def forced_move(self) -> int | None:
        return self.volatile.locked_move


@dataclass
class Team:
    members: list[PokemonInstance]
    active_index: int | None = 0

    @property
    def active(self) -> PokemonInstance | None:
        if self.active_index is None:
            return None
        return self.members[self.active_index]

    def healthy_indices(self) -> list[int]:
        return [idx for idx, mon in enumerate(self.members) if not mon.is_fainted]

    def reserve_indices(self) -> list[int]:
        """Healthy slots other than the active one."""

        return [idx for idx in self.healthy_indices() if idx != self.active_index]

    def has_healthy(self) -> bool:
        return any(not mon.is_fainted for mon in self.members)

    def needs_replacement(self) -> bool:
        active = self.active
        return (active is None or active.is_fainted) and bool(self.reserve_indices())

    def __iter__(self) -> Iterator[PokemonInstance]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)


@dataclass
class TeamPair:
    """The mechanics engine's view of a battle: two teams and the turn counter."""

    player: Team
    npc: Team
    turn: int

    def team(self, side: Side) -> Team:
        return self.player if side is Side.PLAYER else self.npc

    def foe(self, side: Side) -> Team:
        return self.team(side.opponent)


@dataclass
class BattleSession:
    session_id: str
    player_id: str
    npc_profile_id: str
    player_team: Team
    npc_team: Team
    seed: int
    turn: int = 1
    phase: Phase = Phase.WAITING_FOR_PLAYER_ACTION
    outcome: Outcome | None = None
    events: list[BattleEvent] = field(default_factory=list)
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def team(self, side: Side) -> Team:
        return self.player_team if side is Side.PLAYER else self.npc_team

    @property
    def is_ended(self) -> bool:
        return self.phase is Phase.ENDED

    def team_pair(self) -> TeamPair:
        return TeamPair(player=self.player_team, npc=self.npc_team, turn=self.turn)

    def adopt(self, pair: TeamPair) -> None:
        self.player_team = pair.player
        self.npc_team = pair.npc


@dataclass(frozen=True)
class RosterEntry:
    species: str
    level: int
    moves: tuple[str, ...]


@dataclass(frozen=True)
class NPCProfile:
    profile_id: str
    name: str
    difficulty: Difficulty
    aggression: float = 0.7
    switch_hp_fraction: float = 0.25
    lookahead_depth: int | None = None
    description: str = ""
    roster: tuple[RosterEntry, ...] = ()
