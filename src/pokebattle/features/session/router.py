from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse, Response

from ...core.actions import action_from_dict
from ...core.errors import (
    BattleError,
    Conflict,
    EngineFault,
    InvalidAction,
    SessionNotFound,
    SessionTerminated,
    ValidationError,
)
from .schemas import ActionRequest, CreateBattleRequest
from .service import BattleService

__all__ = ["create_battle_routers", "status_for"]

T = TypeVar("T")

# Ordered: subclasses before their bases.
_STATUS_BY_ERROR: tuple[tuple[type[BattleError], int], ...] = (
    (SessionNotFound, 404),
    (SessionTerminated, 409),
    (InvalidAction, 400),
    (Conflict, 409),
    (EngineFault, 500),
    (ValidationError, 422),
)


def status_for(exc: BattleError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


class _BattleController:
    def __init__(self, service: BattleService) -> None:
        self.service = service

    # ------------------------------------------------------------------ helpers
    def _json_response(self, data: Any, *, status_code: int = 200) -> JSONResponse:
        return JSONResponse(data, status_code=status_code)

    async def _call(self, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except BattleError as exc:
            raise HTTPException(status_for(exc), {"code": exc.code, "message": exc.message}) from exc

    # ------------------------------------------------------------------ catalog
    async def teams(self) -> Response:
        teams = self.service.list_teams()
        return self._json_response({"teams": [team.to_dict() for team in teams]})

    async def opponents(self) -> Response:
        opponents = self.service.list_opponents()
        return self._json_response({"opponents": [opponent.to_dict() for opponent in opponents]})

    # ------------------------------------------------------------------ battles
    async def create(self, body: CreateBattleRequest) -> Response:
        created = await self._call(
            lambda: self.service.create_battle_async(
                body.team_id,
                body.opponent_id,
                player_id=body.player_id,
                seed=body.seed,
            )
        )
        return self._json_response(created.to_dict(), status_code=201)

    async def state(self, sid: str) -> Response:
        payload = await self._call(lambda: self.service.get_state_async(sid))
        return self._json_response(payload.to_dict())

    async def valid_actions(self, sid: str) -> Response:
        payload = await self._call(lambda: self.service.valid_actions_async(sid))
        return self._json_response(payload.to_dict())

    async def act(self, sid: str, body: ActionRequest) -> Response:
        async def _submit():
            action = action_from_dict(body.as_dict())
            return await self.service.submit_action_async(sid, action, expected_version=body.expected_version)

        result = await self._call(_submit)
        return self._json_response(result.to_dict())

    async def team(self, sid: str) -> Response:
        payload = await self._call(lambda: self.service.team_info_async(sid))
        return self._json_response(payload.to_dict())

    async def events(self, sid: str, last_turns: int | None) -> Response:
        payload = await self._call(lambda: self.service.events_async(sid, last_turns))
        return self._json_response(payload.to_dict())


def create_battle_routers(service: BattleService) -> tuple[APIRouter, APIRouter]:
    """Build the battle and catalog routers bound to ``service``."""

    controller = _BattleController(service)

    battles = APIRouter(prefix="/api/v1/battles", tags=["battles"])
    catalog = APIRouter(prefix="/api/v1/catalog", tags=["catalog"])

    @catalog.get("/teams")
    async def list_teams() -> Response:
        return await controller.teams()

    @catalog.get("/opponents")
    async def list_opponents() -> Response:
        return await controller.opponents()

    @battles.post("")
    async def create_battle(body: CreateBattleRequest) -> Response:
        return await controller.create(body)

    @battles.get("/{sid}")
    async def get_state(sid: str) -> Response:
        return await controller.state(sid)

    @battles.get("/{sid}/actions")
    async def get_valid_actions(sid: str) -> Response:
        return await controller.valid_actions(sid)

    @battles.post("/{sid}/actions")
    async def post_action(sid: str, body: ActionRequest) -> Response:
        return await controller.act(sid, body)

    @battles.get("/{sid}/team")
    async def get_team(sid: str) -> Response:
        return await controller.team(sid)

    @battles.get("/{sid}/events")
    async def get_events(sid: str, last_turns: int | None = Query(default=None)) -> Response:
        return await controller.events(sid, last_turns)

    return battles, catalog
