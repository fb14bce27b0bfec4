"""Rate Limiting Middleware for FastAPI.

Advisory per-client throttle for /api/* routes: a fixed time window with a
fixed request ceiling, counted in process memory. Counters are read then
incremented without locking and are not shared between worker processes,
so this is a single-process best-effort limit, not a security boundary.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.errors import ERROR_RATE_LIMITED
from storefront.logging import get_logger, sanitize_string_for_logging

logger = get_logger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int = 0


class FixedWindowCounter:
    """Request counts per key for the current window."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: dict[str, _Window] = {}
        self._last_sweep = clock()

    def hit(self, key: str) -> bool:
        """Record a request. Returns False when the key is over its limit."""
        now = self.clock()
        self._maybe_sweep(now)

        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.window_seconds:
            window = _Window(started_at=now)
            self._windows[key] = window

        if window.count >= self.max_requests:
            return False
        window.count += 1
        return True

    def retry_after(self, key: str) -> int:
        window = self._windows.get(key)
        if window is None:
            return 0
        remaining = self.window_seconds - (self.clock() - window.started_at)
        return max(int(remaining + 0.999), 1)

    def _maybe_sweep(self, now: float) -> None:
        """Drop expired windows, at most once per window length."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [k for k, w in self._windows.items() if now - w.started_at >= self.window_seconds]
        for k in expired:
            del self._windows[k]

    def __len__(self) -> int:
        return len(self._windows)


def client_address(request: Request) -> str:
    """Client IP, preferring the first X-Forwarded-For hop."""
    if forwarded_for := request.headers.get("X-Forwarded-For"):
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Limits requests per client address on paths under `path_prefix`."""

    def __init__(
        self,
        app: Any,
        max_requests: int = 100,
        window_seconds: float = 900,
        path_prefix: str = "/api/",
        counter: FixedWindowCounter | None = None,
    ) -> None:
        super().__init__(app)
        self.path_prefix = path_prefix
        self.counter = counter or FixedWindowCounter(max_requests, window_seconds)

    async def dispatch(self, request: Request, call_next: Callable[..., Any]) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)  # type: ignore[no-any-return]

        client_ip = client_address(request)
        if not self.counter.hit(client_ip):
            logger.warning(
                f"Rate limit exceeded for {sanitize_string_for_logging(client_ip)} "
                f"on {sanitize_string_for_logging(request.url.path)}"
            )
            return JSONResponse(
                {"error": ERROR_RATE_LIMITED},
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                headers={"Retry-After": str(self.counter.retry_after(client_ip))},
            )

        return await call_next(request)  # type: ignore[no-any-return]
