"""Redis-based sliding window rate limiter middleware."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from skybook_api.cache.redis_client import get_redis_pool
from skybook_api.config import settings

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiter backed by Redis sorted sets."""

    def __init__(self, app: ASGIApp, requests_per_minute: int | None = None) -> None:
        super().__init__(app)
        self._rpm = requests_per_minute or settings.rate_limit_per_minute

    async def dispatch(self, request: Request, call_next) -> Response:
        """Check rate limit, then forward to the next middleware/route."""
        identifier = self._get_identifier(request)
        redis = await get_redis_pool()

        key = f"rate_limit:{identifier}"
        now = time.time()

        pipe = redis.pipeline()
        pipe.zremrangebyscore(key, "-inf", now - WINDOW_SECONDS)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, int(WINDOW_SECONDS * 2))
        results = await pipe.execute()

        if results[1] >= self._rpm:
            logger.warning("Rate limit hit for %s", identifier)
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded. Try again later.",
                    "code": "rate_limited",
                },
                headers={"Retry-After": str(int(WINDOW_SECONDS))},
            )

        return await call_next(request)

    @staticmethod
    def _get_identifier(request: Request) -> str:
        """Extract user ID from JWT bearer token, or fall back to client IP."""
        auth = request.headers.get("authorization", "")
        if auth.startswith("Bearer "):
            try:
                payload = jwt.decode(
                    auth[7:],
                    settings.jwt_secret,
                    algorithms=[settings.jwt_algorithm],
                )
            except jwt.InvalidTokenError:
                payload = {}
            user_id = payload.get("sub")
            if user_id:
                return f"user:{user_id}"

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"

        client = request.client
        if client is not None:
            return f"ip:{client.host}"
        return "ip:unknown"
