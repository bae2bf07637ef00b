"""FastAPI application factory."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from skybook_api.config import ApiSettings, settings

# Propagate DB URL so skybook_db.database picks it up via os.getenv.
os.environ.setdefault("DATABASE_URL", settings.database_url)

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skybook_api.cache.redis_client import close_redis, init_redis
from skybook_api.middleware.rate_limit import RateLimitMiddleware
from skybook_api.routers import auth, bookings, flights, users, wallet
from skybook_api.schemas.common import ErrorResponse
from skybook_core.errors import (
    AlreadyCancelledError,
    ConflictRetryError,
    InsufficientSeatsError,
    InsufficientWalletBalanceError,
    NotFoundError,
    SkybookError,
    UnauthorizedError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from fastapi import Request

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[SkybookError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InsufficientSeatsError: status.HTTP_400_BAD_REQUEST,
    InsufficientWalletBalanceError: status.HTTP_400_BAD_REQUEST,
    AlreadyCancelledError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictRetryError: status.HTTP_409_CONFLICT,
}


def status_for(exc: SkybookError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _skybook_error_handler(
    request: Request, exc: SkybookError
) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc.message
        )
    body = ErrorResponse(detail=exc.message, code=exc.code)
    return JSONResponse(status_code=code, content=body.model_dump())


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    detail = "Invalid request"
    if errors:
        where = ".".join(str(part) for part in errors[0].get("loc", ()))
        detail = f"{where}: {errors[0].get('msg', detail)}"
    body = ErrorResponse(detail=detail, code=ValidationError.code)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump()
    )


def _lifespan_for(app_settings: ApiSettings):
    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Manage startup / shutdown resources."""
        if app_settings.rate_limit_per_minute > 0:
            await init_redis(app_settings.redis_url)
        yield
        await close_redis()

    return _lifespan


def create_app(app_settings: ApiSettings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or settings
    app = FastAPI(
        title="Skybook API",
        version="0.1.0",
        lifespan=_lifespan_for(app_settings),
    )
    app.add_exception_handler(SkybookError, _skybook_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # Middleware (order matters: last added = first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if app_settings.rate_limit_per_minute > 0:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=app_settings.rate_limit_per_minute,
        )

    # Routers
    _prefix = "/api/v1"
    app.include_router(auth.router, prefix=_prefix)
    app.include_router(users.router, prefix=_prefix)
    app.include_router(flights.router, prefix=_prefix)
    app.include_router(bookings.router, prefix=_prefix)
    app.include_router(wallet.router, prefix=_prefix)

    return app


app = create_app()
