import logging
import time

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from friendgraph.config import settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
UNLIMITED_PATHS = frozenset({"/health"})


async def count_hit(redis_client, key: str, now: float) -> int:
    """Record one hit in the sorted set at ``key``; return hits inside the window."""
    pipe = redis_client.pipeline()
    pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
    pipe.zadd(key, {str(now): now})
    pipe.zcard(key)
    pipe.expire(key, WINDOW_SECONDS)
    _, _, hits, _ = await pipe.execute()
    return hits


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client sliding window over Redis. Open when Redis is absent or down."""

    async def dispatch(self, request: Request, call_next):
        redis_client = getattr(request.app.state, "redis", None)
        if redis_client is None or request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        try:
            hits = await count_hit(redis_client, f"friendgraph:rate:{client}", time.time())
        except Exception as exc:
            logger.warning("Rate limiter unavailable, letting %s through: %s", client, exc)
            return await call_next(request)

        if hits > settings.RATE_LIMIT_PER_MINUTE:
            logger.info("Client %s over %d requests/min", client, settings.RATE_LIMIT_PER_MINUTE)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests, slow down"},
            )
        return await call_next(request)
