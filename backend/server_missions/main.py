# backend/server_missions/main.py
from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from server_missions.db import healthcheck
from server_missions.routers.admin import router as admin_router
from server_missions.routers.missions import router as missions_router
from server_missions.services.errors import MissionError
from server_missions.services.ledger import RewardLedger, build_ledger

logger = logging.getLogger(__name__)


def build_app(ledger: Optional[RewardLedger] = None) -> FastAPI:
    app = FastAPI(title="Server Missions API")
    app.state.ledger = ledger or build_ledger()

    # CORS (adjust origins as you need)
    frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[frontend_origin],
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1|0\.0\.0\.0)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    @app.exception_handler(MissionError)
    async def _mission_error(request: Request, exc: MissionError):
        if exc.status_code >= 500:
            logger.error(f"[api] {request.method} {request.url.path} -> {exc.kind}: {exc.detail}")
        else:
            logger.warning(f"[api] {request.method} {request.url.path} -> {exc.kind}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error": exc.kind},
        )

    # Health
    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/health/db")
    def health_db():
        return healthcheck()

    # Mount routers
    app.include_router(admin_router)
    app.include_router(missions_router)

    return app


app = build_app()
