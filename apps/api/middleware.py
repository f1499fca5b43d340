"""Request guards for the public API"""

import logging
import math
import threading
import time
from typing import Dict, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window rate limiting per client IP.

    Every response carries ``RateLimit-Limit``, ``RateLimit-Remaining`` and
    ``RateLimit-Reset`` headers; requests over the limit get a 429.
    """

    def __init__(self, app, max_requests: int = 100, window_s: int = 15 * 60):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_s = window_s
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def get_client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _hit(self, key: str) -> Tuple[int, float]:
        """Count one request; return (requests in window, window start)"""
        now = time.time()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_s:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)

            # drop stale windows
            if len(self._windows) > 10_000:
                self._windows = {
                    k: v for k, v in self._windows.items() if now - v[0] < self.window_s
                }
        return count, started

    def _headers(self, count: int, started: float) -> Dict[str, str]:
        reset = max(0, math.ceil(started + self.window_s - time.time()))
        return {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(max(0, self.max_requests - count)),
            "RateLimit-Reset": str(reset),
        }

    async def dispatch(self, request: Request, call_next):
        ip = self.get_client_ip(request)
        count, started = self._hit(ip)
        headers = self._headers(count, started)

        if count > self.max_requests:
            logger.warning(f"Rate limit exceeded for {ip}")
            return JSONResponse(
                {"error": "Too many requests, please try again later."},
                status_code=429,
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
