# fanstream_backend/api/middleware.py
import logging
import time
import uuid
from collections import defaultdict, deque
from typing import Deque, Dict, Iterable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

log = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0
WINDOW_SECONDS = 60.0


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Tags every response with a request id and its handling time."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            log.error("%s %s crashed after %.3fs: %s",
                      request.method, request.url.path, time.perf_counter() - started, e)
            raise

        elapsed = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        if elapsed > SLOW_REQUEST_SECONDS:
            log.warning("Slow %s %s: %.3fs", request.method, request.url.path, elapsed)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding one-minute window per client address."""

    def __init__(self, app, requests_per_minute: int = 120, exempt_prefixes: Iterable[str] = ("/health",)):
        super().__init__(app)
        self.limit = requests_per_minute
        self.exempt_prefixes = tuple(exempt_prefixes)
        self.hits: Dict[str, Deque[float]] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(self.exempt_prefixes):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        now = time.monotonic()
        window = self.hits[client]
        while window and now - window[0] > WINDOW_SECONDS:
            window.popleft()

        if len(window) >= self.limit:
            retry_after = max(1, int(WINDOW_SECONDS - (now - window[0])))
            log.info("Rate limit hit for %s", client)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded"},
                headers={"Retry-After": str(retry_after)},
            )

        window.append(now)
        return await call_next(request)
