from __future__ import annotations

import json
import logging
import threading
from typing import Any

from ..core.codec import session_from_dict, session_to_dict
from ..core.errors import Conflict, SessionNotFound, ValidationError
from ..core.models import BattleSession, Phase

__all__ = ["InMemorySessionStore"]

logger = logging.getLogger(__name__)


class InMemorySessionStore:
    """Thread-safe store keeping each session as a serialized JSON snapshot.

    Callers never share objects with the store: every load decodes a fresh
    session and every save encodes the one it is given.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, str] = {}
        self._lock = threading.Lock()

    def insert(self, session: BattleSession) -> int:
        self._check_persistable(session)
        if session.version != 0:
            raise ValidationError(f"new session must start at version 0, got {session.version}")
        payload = self._encode(session)
        with self._lock:
            if session.session_id in self._snapshots:
                raise ValidationError(f"session '{session.session_id}' already exists")
            self._snapshots[session.session_id] = payload
        logger.debug("Session inserted", extra={"session_id": session.session_id})
        return session.version

    def load(self, session_id: str) -> tuple[BattleSession, int]:
        with self._lock:
            payload = self._snapshots.get(session_id)
        if payload is None:
            raise SessionNotFound(session_id)
        session = session_from_dict(json.loads(payload))
        return session, session.version

    def save(self, session_id: str, session: BattleSession, expected_version: int) -> int:
        self._check_persistable(session)
        if session.session_id != session_id:
            raise ValidationError(f"snapshot belongs to '{session.session_id}', not '{session_id}'")
        if session.version != expected_version + 1:
            raise ValidationError(
                f"new version must be {expected_version + 1}, got {session.version}",
            )
        payload = self._encode(session)
        with self._lock:
            current = self._snapshots.get(session_id)
            if current is None:
                raise SessionNotFound(session_id)
            stored_version = int(json.loads(current)["version"])
            if stored_version != expected_version:
                logger.debug(
                    "Stale save rejected",
                    extra={"session_id": session_id, "expected": expected_version, "actual": stored_version},
                )
                raise Conflict(session_id, expected=expected_version, actual=stored_version)
            self._snapshots[session_id] = payload
        return session.version

    def snapshot(self, session_id: str) -> dict[str, Any]:
        """Raw stored payload, mainly for tests and debugging."""

        with self._lock:
            payload = self._snapshots.get(session_id)
        if payload is None:
            raise SessionNotFound(session_id)
        return json.loads(payload)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._snapshots

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

    @staticmethod
    def _check_persistable(session: BattleSession) -> None:
        if session.phase is Phase.RESOLVING_TURN:
            raise ValidationError("a session in the middle of resolving a turn cannot be stored")

    @staticmethod
    def _encode(session: BattleSession) -> str:
        return json.dumps(session_to_dict(session), separators=(",", ":"))
