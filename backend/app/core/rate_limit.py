"""
Per-user fixed-window rate limiting exposed as FastAPI dependencies.

Counters live in process memory, so limits apply per worker.
"""
import logging
import threading
import time

from fastapi import Depends

from app.core.config import settings
from app.core.exceptions import RateLimitExceeded
from app.core.security import TokenPayload, verify_token

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts hits per key inside a fixed time window."""

    def __init__(self, name: str, limit: int, window_seconds: int):
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: float | None = None) -> None:
        """Record one request for key, raising RateLimitExceeded over the limit."""
        now = time.monotonic() if now is None else now
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0

            if count >= self.limit:
                retry_after = max(1, int(self.window_seconds - (now - started)))
                logger.warning(f"Rate limit '{self.name}' exceeded for {key}")
                raise RateLimitExceeded(retry_after=retry_after)

            self._windows[key] = (started, count + 1)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __call__(self, current_user: TokenPayload = Depends(verify_token)) -> TokenPayload:
        self.hit(f"user:{current_user.sub}")
        return current_user


upload_limiter = RateLimiter(
    "upload",
    limit=settings.UPLOAD_RATE_LIMIT,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
llm_limiter = RateLimiter(
    "llm",
    limit=settings.LLM_RATE_LIMIT,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
