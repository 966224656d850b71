"""FastAPI application factory."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from virtual_ta import __version__
from virtual_ta.api.router import router
from virtual_ta.config import VirtualTAConfig
from virtual_ta.db.connection import Database
from virtual_ta.db.schema import initialize
from virtual_ta.rag.index import LatencyTracker

logger = logging.getLogger(__name__)


def create_app(db_path: Path | str, cfg: VirtualTAConfig | None = None) -> FastAPI:
    """Build the app for the database at *db_path*.

    The schema is created up front so concurrent first requests never race
    on migrations.
    """
    with Database(db_path) as conn:
        initialize(conn)

    app = FastAPI(title="virtual-ta", version=__version__)
    app.state.db_path = db_path
    app.state.config = cfg or VirtualTAConfig()
    app.state.latency = LatencyTracker()

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"detail": "Invalid request format"})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "version": __version__}

    app.include_router(router)
    return app
