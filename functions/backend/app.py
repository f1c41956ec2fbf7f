"""
FastAPI application entry point for the knock backend.

Domain errors raised by the knock core are translated here, so routes
let `KnockError` propagate.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.config import get_settings
from backend.dependencies import shutdown_knock_registry
from backend.errors import KnockError, NotFoundError, NotMemberError
from backend.routes import router

logger = logging.getLogger(__name__)


def status_code_for(error: KnockError) -> int:
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, NotMemberError):
        return 403
    return 400


async def knock_error_handler(request: Request, error: KnockError) -> JSONResponse:
    status_code = status_code_for(error)
    logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, error)
    return JSONResponse(status_code=status_code, content={"detail": str(error)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Cancels pending expiry and confirmation timers.
    shutdown_knock_registry()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Knock Backend (FastAPI)", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(KnockError, knock_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
