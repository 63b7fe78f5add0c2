"""
Rate Limit Middleware

Simple in-memory rate limiting using sliding window.
"""

import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from huddle.config import settings

EXEMPT_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-client sliding window over the HTTP API.

    Keyed by the ``X-User-Id`` header when present, otherwise by client IP.
    WebSocket traffic and static uploads are not counted.
    """

    def __init__(self, app, limit: Optional[int] = None, window_size: int = 60):
        super().__init__(app)
        self.requests: Dict[str, List[float]] = defaultdict(list)
        self.limit = limit or settings.rate_limit_per_minute
        self.window_size = window_size

    def _get_key(self, request: Request) -> str:
        user_id = request.headers.get("X-User-Id")
        if user_id:
            return f"user:{user_id}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"

    def _is_rate_limited(self, key: str) -> bool:
        now = time.time()
        window_start = now - self.window_size

        self.requests[key] = [ts for ts in self.requests[key] if ts > window_start]

        if len(self.requests[key]) >= self.limit:
            return True

        self.requests[key].append(now)
        return False

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in EXEMPT_PATHS or not path.startswith("/api/"):
            return await call_next(request)

        if self._is_rate_limited(self._get_key(request)):
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Rate limit exceeded. Please try again later.",
                    "retry_after_seconds": self.window_size,
                },
                headers={"Retry-After": str(self.window_size)},
            )

        return await call_next(request)
