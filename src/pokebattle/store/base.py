from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..core.models import BattleSession

__all__ = ["SessionStore"]


@runtime_checkable
class SessionStore(Protocol):
    """Versioned persistence for battle sessions.

    ``save`` is a compare-and-swap: it succeeds only when the stored version
    still equals ``expected_version`` and the new snapshot carries exactly
    ``expected_version + 1``.
    """

    def insert(self, session: BattleSession) -> int: ...

    def load(self, session_id: str) -> tuple[BattleSession, int]: ...

    def save(self, session_id: str, session: BattleSession, expected_version: int) -> int: ...
