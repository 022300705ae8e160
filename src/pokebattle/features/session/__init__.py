"""Battle session feature: service layer, schemas, and API router."""

from .router import create_battle_routers
from .schemas import (
    ActionPayload,
    ActionRequest,
    ActionResultPayload,
    BattleStatePayload,
    CreateBattleRequest,
    CreateBattleResponse,
    EventPayload,
    EventsPayload,
    TeamInfoPayload,
    ValidActionsPayload,
)
from .service import BattleService

__all__ = [
    "ActionPayload",
    "ActionRequest",
    "ActionResultPayload",
    "BattleService",
    "BattleStatePayload",
    "CreateBattleRequest",
    "CreateBattleResponse",
    "EventPayload",
    "EventsPayload",
    "TeamInfoPayload",
    "ValidActionsPayload",
    "create_battle_routers",
]
