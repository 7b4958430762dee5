"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tierhub.api.errors import api_error
from tierhub.api.errors import handle_http_exception
from tierhub.api.routers.maintenance import router as maintenance_router
from tierhub.api.routers.share import router as share_router
from tierhub.api.routers.tierlists import router as tierlists_router
from tierhub.core.config import Settings
from tierhub.core.config import load_settings
from tierhub.core.logs import configure_logging
from tierhub.runtime import build_runtime
from tierhub.tierlists.errors import StoreError
from tierhub.tierlists.service import TierlistValidationError
from tierhub.ws.routers import router as ws_router

logger = logging.getLogger(__name__)


async def handle_store_error(_: Request, exc: StoreError) -> JSONResponse:
    logger.error("store failure while serving request: %s", exc)
    return JSONResponse(
        status_code=500,
        content=api_error(code="PERSISTENCE_FAILED", message="storage operation failed"),
    )


async def handle_validation_error(_: Request, exc: TierlistValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=api_error(code="VALIDATION_ERROR", message=str(exc)),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build an application with its own runtime (store, rooms, sessions)."""
    settings = settings or load_settings()
    runtime = build_runtime(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        configure_logging(settings.tierhub_log_level)
        runtime.startup()
        yield

    app = FastAPI(title="tierhub", lifespan=lifespan)
    app.state.runtime = runtime
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(StoreError, handle_store_error)
    app.add_exception_handler(TierlistValidationError, handle_validation_error)
    app.include_router(tierlists_router)
    app.include_router(share_router)
    app.include_router(maintenance_router)
    app.include_router(ws_router)
    return app


app = create_app()


def run() -> None:
    settings = app.state.runtime.settings
    uvicorn.run(
        app,
        host=settings.tierhub_app_host,
        port=settings.tierhub_app_port,
        log_level=settings.tierhub_log_level.lower(),
    )


__all__ = ["app", "create_app", "run"]
