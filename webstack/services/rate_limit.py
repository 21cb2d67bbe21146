"""Fixed-window, in-process request limiting keyed by client or user id.

State lives in the worker process, so limits apply per worker rather than per
deployment.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

from webstack.errors import FunctionError

logger = logging.getLogger(__name__)

_PRUNE_GRACE_SECONDS = 60.0


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    retry_after: Optional[int] = None

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }
        if not self.allowed and self.retry_after:
            headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def check(self, client_id: str, *, max_requests: int, window_seconds: float, prefix: str = "") -> RateLimitResult:
        key = f"{prefix}:{client_id}"
        now = self._clock()
        with self._lock:
            self._prune(now)
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                window = _Window(count=0, reset_at=now + window_seconds)
                self._windows[key] = window

            if window.count >= max_requests:
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=window.reset_at,
                    retry_after=math.ceil(window.reset_at - now),
                )
            window.count += 1
            return RateLimitResult(allowed=True, remaining=max_requests - window.count, reset_at=window.reset_at)

    def _prune(self, now: float) -> None:
        if now - self._last_prune < _PRUNE_GRACE_SECONDS:
            return
        self._last_prune = now
        expired = [key for key, window in self._windows.items() if now > window.reset_at + _PRUNE_GRACE_SECONDS]
        for key in expired:
            del self._windows[key]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def fingerprint_hash(value: str) -> str:
    """32-bit rolling string hash over UTF-16 code units, rendered as `hash_<hex>`."""
    result = 0
    encoded = value.encode("utf-16-le")
    for index in range(0, len(encoded), 2):
        code_unit = encoded[index] | (encoded[index + 1] << 8)
        result = (result * 31 + code_unit) & 0xFFFFFFFF
    if result >= 0x80000000:
        result -= 0x100000000
    return f"hash_{abs(result):x}"


def client_id_from_request(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    user_agent = request.headers.get("user-agent", "")
    language = request.headers.get("accept-language", "")
    return fingerprint_hash(f"{user_agent}:{language}")


def enforce(result: RateLimitResult) -> None:
    if result.allowed:
        return
    logger.warning("Rate limit exceeded", extra={"retry_after": result.retry_after})
    error = FunctionError(
        message="Too many requests",
        status_code=429,
        headers=result.headers(),
        retryAfter=result.retry_after,
    )
    error.extra["message"] = f"Rate limit exceeded. Please try again in {result.retry_after} seconds."
    raise error


limiter = FixedWindowRateLimiter()
