"""Closed error taxonomy for the battle orchestrator.

Every failure the core can report is one of these classes.  They carry the
context a caller needs (session id, reason, versions) and are translated to
transport codes only at the HTTP boundary.
"""

from __future__ import annotations

__all__ = [
    "BattleError",
    "Conflict",
    "EngineFault",
    "InvalidAction",
    "SessionNotFound",
    "SessionTerminated",
    "ValidationError",
]


class BattleError(Exception):
    """Base for every error raised by the battle core."""

    code = "battle_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SessionNotFound(BattleError):
    code = "session_not_found"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session '{session_id}' not found")
        self.session_id = session_id


class InvalidAction(BattleError):
    code = "invalid_action"

    def __init__(self, reason: str, *, action: object | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.action = action


class SessionTerminated(InvalidAction):
    code = "session_terminated"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session '{session_id}' has ended")
        self.session_id = session_id


class Conflict(BattleError):
    code = "conflict"
    retryable = True

    def __init__(self, session_id: str, *, expected: int, actual: int) -> None:
        super().__init__(f"session '{session_id}' is at version {actual}, expected {expected}")
        self.session_id = session_id
        self.expected = expected
        self.actual = actual


class EngineFault(BattleError):
    """The mechanics engine rejected its input; the turn is abandoned."""

    code = "engine_fault"


class ValidationError(BattleError):
    code = "validation_error"
