"""Domain model, errors and configuration shared across the battle core."""

from .actions import Action, Continue, Forfeit, Struggle, Switch, UseMove, ValidActionSet
from .errors import (
    BattleError,
    Conflict,
    EngineFault,
    InvalidAction,
    SessionNotFound,
    SessionTerminated,
    ValidationError,
)
from .events import BattleEvent
from .models import (
    BattleSession,
    Difficulty,
    NPCProfile,
    Outcome,
    Phase,
    PokemonInstance,
    Side,
    Status,
    Team,
    TeamPair,
)
from .settings import BattleSettings, TieBreak

__all__ = [
    "Action",
    "BattleError",
    "BattleEvent",
    "BattleSession",
    "BattleSettings",
    "Conflict",
    "Continue",
    "Difficulty",
    "EngineFault",
    "Forfeit",
    "InvalidAction",
    "NPCProfile",
    "Outcome",
    "Phase",
    "PokemonInstance",
    "SessionNotFound",
    "SessionTerminated",
    "Side",
    "Status",
    "Struggle",
    "Switch",
    "Team",
    "TeamPair",
    "TieBreak",
    "UseMove",
    "ValidActionSet",
    "ValidationError",
]
