"""Stateless battle-session orchestration for player-vs-NPC Gen-1 battles."""

from __future__ import annotations

__version__ = "0.1.0"

__all__: list[str] = ["__version__"]
