"""Explicit TTL cache for resolved prices.

The resolver receives a :class:`PriceCache` instance instead of sharing
process-wide state, so its lifetime and invalidation are owned by whoever
builds the resolver.
"""

from __future__ import annotations

import datetime  # noqa: TCH003
import threading
import time
from collections.abc import Callable


class PriceCache:
    """Thread-safe ``(ticker, date) -> price`` cache with per-entry expiry."""

    def __init__(self, ttl_seconds: float = 900.0, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[tuple[str, datetime.date], tuple[float, float]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, ticker: str, date: datetime.date) -> float | None:
        """Return the cached price, or None if absent or expired."""
        key = (ticker, date)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            price, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return price

    def put(self, ticker: str, date: datetime.date, price: float) -> None:
        with self._lock:
            self._entries[(ticker, date)] = (price, self._clock() + self._ttl)

    def invalidate(self, ticker: str | None = None) -> int:
        """Drop entries for *ticker* (or every entry when None). Returns the count removed."""
        with self._lock:
            if ticker is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed
            keys = [k for k in self._entries if k[0] == ticker]
            for k in keys:
                del self._entries[k]
            return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
