# app/middleware/activity_logger.py
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("app.requests")


class ActivityLoggerMiddleware(BaseHTTPMiddleware):
    """One log line per request: method, path, status, latency and the acting user."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        # set by get_current_user / get_optional_user during the request
        user = getattr(request.state, "user", None)
        username = getattr(user, "username", None) or "anonymous"

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s -> %s (%.1f ms) user=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            username,
        )
        return response
