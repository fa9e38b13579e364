"""Per-key sliding-window rate limiter.

Each key (an authenticated API key, or the caller's network origin when there
is none) owns a list of request timestamps inside the trailing window. A
request is admitted while fewer than ``max_requests`` timestamps remain in the
window.

Algorithm (evaluated lazily on every call, no background sweeper):
    1. window_start = now - window_ms
    2. Prune every tracked key to timestamps > window_start and delete keys
       whose list became empty (bounds memory for idle keys)
    3. If the requesting key still holds >= max_requests timestamps, reject
       with retry_after = ceil(window_ms / 1000)
    4. Otherwise append now and admit

retry_after is a fixed bound tied to the window size, not the time until the
oldest timestamp expires. Clients see the same value on every rejection.

Thread Safety:
    FastAPI runs synchronous dependencies on a thread pool, so admit() holds a
    single lock for its whole read-modify-write. A lost update would under-count
    requests.

Complexity:
    - admit: O(k * w) where k = tracked keys, w = timestamps per key (<= max_requests)
    - Memory: O(k * max_requests)
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from ..security.redaction import mask_credential
from .store import InMemoryRateLimitStore, RateLimitStore

logger = structlog.get_logger()


def _now_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single admit() call.

    Attributes:
        allowed: True if the request was admitted (and counted)
        limit: Configured maximum per window
        remaining: Requests still available in the current window
        retry_after: Seconds to wait before retrying; None when admitted
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after: Optional[int] = None


class SlidingWindowRateLimiter:
    """Sliding-window limiter over an injectable timestamp store.

    Usage Example:
        limiter = SlidingWindowRateLimiter(window_ms=1000, max_requests=3)
        decision = limiter.admit("secret123", now=0)
        if not decision.allowed:
            ...  # answer 429 with decision.retry_after
    """

    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = _now_ms,
    ):
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")

        self.window_ms = window_ms
        self.max_requests = max_requests
        self.store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def retry_after_seconds(self) -> int:
        return math.ceil(self.window_ms / 1000)

    def _prune_all(self, window_start: float) -> None:
        for key in self.store.keys():
            timestamps = self.store.get(key) or []
            recent = [ts for ts in timestamps if ts > window_start]
            if recent:
                if len(recent) != len(timestamps):
                    self.store.set(key, recent)
            else:
                self.store.delete(key)

    def admit(self, key: str, now: Optional[float] = None) -> RateLimitDecision:
        """Count a request for ``key`` if the window has room.

        Args:
            key: Identity key or network origin
            now: Current time in milliseconds (defaults to the clock)

        Returns:
            RateLimitDecision: allowed=False with retry_after when the key has
            used up its window
        """
        with self._lock:
            # Read under the lock so stored timestamps stay in order
            if now is None:
                now = self._clock()
            window_start = now - self.window_ms

            self._prune_all(window_start)

            recent = [ts for ts in (self.store.get(key) or []) if ts > window_start]

            if len(recent) >= self.max_requests:
                logger.warning(
                    "Rate limit exceeded",
                    key_prefix=mask_credential(key),
                    requests=len(recent),
                    limit=self.max_requests,
                    window_ms=self.window_ms,
                )
                return RateLimitDecision(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    retry_after=self.retry_after_seconds,
                )

            recent.append(now)
            self.store.set(key, recent)

        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(recent),
        )

    def tracked_keys(self) -> int:
        """Number of keys currently holding timestamps."""
        return len(self.store)

    def reset(self) -> None:
        with self._lock:
            for key in self.store.keys():
                self.store.delete(key)

    def get_stats(self) -> dict:
        return {
            "storage_type": type(self.store).__name__,
            "tracked_keys": self.tracked_keys(),
            "window_ms": self.window_ms,
            "max_requests": self.max_requests,
        }
