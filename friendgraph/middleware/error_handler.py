import logging

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from friendgraph.exceptions import FriendshipError, StorePersistenceError

logger = logging.getLogger(__name__)


def _error_body(exc: Exception, detail: str) -> dict:
    return {"detail": detail, "type": type(exc).__name__}


async def handle_friendship_error(request: Request, exc: FriendshipError) -> JSONResponse:
    if isinstance(exc, StorePersistenceError):
        logger.warning("%s %s: store unavailable (%s)", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc, exc.detail))


async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body(exc, str(exc)))


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path)
    sentry_sdk.capture_exception(exc)
    return JSONResponse(status_code=500, content=_error_body(exc, "Internal server error"))


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(FriendshipError, handle_friendship_error)
    app.add_exception_handler(ValueError, handle_value_error)
    app.add_exception_handler(Exception, handle_unexpected)
