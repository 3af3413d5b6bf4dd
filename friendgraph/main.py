import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
import sentry_sdk
from fastapi import FastAPI
from sqlalchemy import text

from friendgraph.config import settings
from friendgraph.database import engine
from friendgraph.middleware.error_handler import register_error_handlers
from friendgraph.middleware.rate_limit import RateLimitMiddleware
from friendgraph.routers.friendships import router as friendships_router
from friendgraph.services.pair_locks import PairLocks

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else 1.0,
        send_default_pii=False,
    )


def build_pair_locks(redis_client) -> PairLocks:
    locks = PairLocks(
        redis_client if settings.USE_REDIS_PAIR_LOCKS else None,
        timeout=settings.PAIR_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=settings.PAIR_LOCK_BLOCKING_TIMEOUT_SECONDS,
    )
    logger.info("Pair locks: %s", "redis" if locks.distributed else "in-process")
    return locks


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    app.state.redis = redis.from_url(settings.REDIS_URL, decode_responses=True)
    await app.state.redis.ping()
    app.state.pair_locks = build_pair_locks(app.state.redis)

    try:
        yield
    finally:
        await app.state.redis.close()
        await engine.dispose()


app = FastAPI(title="Friendgraph API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RateLimitMiddleware)
register_error_handlers(app)
app.include_router(friendships_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
