from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from .. import __version__
from ..features.session import BattleService, create_battle_routers

__all__ = ["app", "create_app", "main"]

logger = logging.getLogger(__name__)


def create_app(service: BattleService | None = None) -> FastAPI:
    """Build the HTTP application around ``service`` (a fresh in-memory one by default)."""

    application = FastAPI(title="Pokebattle", version=__version__)
    battle_service = service or BattleService()
    application.state.battle_service = battle_service
    battles, catalog = create_battle_routers(battle_service)
    application.include_router(battles)
    application.include_router(catalog)

    @application.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    def _custom_openapi() -> dict[str, object]:  # pragma: no cover - exercised via docs
        if application.openapi_schema:
            return application.openapi_schema
        schema = get_openapi(
            title=application.title,
            version=__version__,
            description="Turn-based player-vs-NPC battles over a stateless API.",
            routes=application.routes,
        )
        application.openapi_schema = schema
        return schema

    application.openapi = _custom_openapi  # type: ignore[assignment]
    return application


app = create_app()


def main() -> None:  # pragma: no cover - runner
    import uvicorn

    host = os.environ.get("BIND", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    logger.info("Starting battle API", extra={"host": host, "port": port})
    uvicorn.run("pokebattle.web.app:app", host=host, port=port, factory=False)


if __name__ == "__main__":  # pragma: no cover
    main()
