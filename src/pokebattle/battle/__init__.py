"""Battle session orchestration: validation, ordering, NPC policy and turn resolution."""

from .lifecycle import SessionLifecycleManager
from .ordering import order_actions
from .policy import PolicySelector
from .resolver import TurnResolver, TurnResult
from .validator import forced_action, require_actions, valid_actions
from .visibility import BattleView, PokemonView, view_for

__all__ = [
    "BattleView",
    "PokemonView",
    "PolicySelector",
    "SessionLifecycleManager",
    "TurnResolver",
    "TurnResult",
    "forced_action",
    "order_actions",
    "require_actions",
    "valid_actions",
    "view_for",
]
