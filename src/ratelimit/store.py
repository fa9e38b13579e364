"""Storage for per-key request timestamps used by the sliding-window limiter.

The limiter only talks to the small RateLimitStore interface below, so the
process-local dictionary can be swapped for a shared store without touching
the limiting logic.

Thread Safety:
    InMemoryRateLimitStore guards each operation with a lock. Multi-step
    read-modify-write sequences are made atomic by the limiter, which holds
    its own lock around them.
"""

import threading
from typing import Iterator, Optional, Protocol, runtime_checkable


@runtime_checkable
class RateLimitStore(Protocol):
    """Minimal key -> timestamp-list store."""

    def get(self, key: str) -> Optional[list[float]]:
        ...

    def set(self, key: str, timestamps: list[float]) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...

    def __len__(self) -> int:
        ...


class InMemoryRateLimitStore:
    """Process-local store backed by a dict.

    Values are copied on the way in and out so callers can never mutate the
    stored lists behind the limiter's back.
    """

    def __init__(self):
        self._data: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[list[float]]:
        with self._lock:
            timestamps = self._data.get(key)
            return list(timestamps) if timestamps is not None else None

    def set(self, key: str, timestamps: list[float]) -> None:
        with self._lock:
            self._data[key] = list(timestamps)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data.keys())

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
