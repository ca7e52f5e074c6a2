"""
In-memory token bucket rate limiter keyed by (client ip, path).
"""
import time
from collections import defaultdict
from typing import Dict, Tuple
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from timekeeper.observability.metrics import rate_limits_total

EXEMPT_PATHS = frozenset({"/healthz", "/readyz", "/metrics"})


class TokenBucket:
    def __init__(self, capacity: int, refill_rate: float, burst: int = None):
        self.capacity = capacity
        self.burst = burst if burst is not None else capacity
        self.tokens = self.burst
        self.refill_rate = refill_rate  # tokens per second
        self.last_refill = time.monotonic()

    def consume(self, tokens: int = 1) -> bool:
        self._refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def _refill(self):
        now = time.monotonic()
        self.tokens = min(self.burst, self.tokens + (now - self.last_refill) * self.refill_rate)
        self.last_refill = now


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Refuses with 429 once a client exhausts its bucket for a path."""

    def __init__(self, app, capacity: int = 60, burst: int = None):
        super().__init__(app)
        self.capacity = capacity
        self.burst = burst if burst is not None else capacity
        self.refill_rate = capacity / 60.0
        self.buckets: Dict[Tuple[str, str], TokenBucket] = defaultdict(
            lambda: TokenBucket(self.capacity, self.refill_rate, self.burst)
        )

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        if not self.buckets[(client_ip, path)].consume():
            rate_limits_total.labels(service="api").inc()
            return JSONResponse(
                status_code=429,
                content={
                    "ok": False,
                    "data": None,
                    "error": {
                        "code": "rate_limited",
                        "message": f"Rate limit exceeded. Max {self.capacity} requests per minute.",
                        "details": None,
                    },
                    "requestId": getattr(request.state, "request_id", ""),
                },
            )

        return await call_next(request)
