"""In-process cache with per-entry TTL.

Expired entries are dropped lazily on read and on write.
"""
import time
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger()


class TTLCache:
    """Dict-backed cache: key -> (value, expires_at)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[Any, float]] = {}
        self._clock = clock

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def put(self, key: str, value: Any, ttl: float) -> None:
        """Store a value for ``ttl`` seconds."""
        self._purge_expired()
        self._entries[key] = (value, self._clock() + ttl)
        logger.debug("cache_put", key=key, ttl=ttl)

    def has(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def forget(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Clear all entries (for testing)."""
        self._entries.clear()

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until the entry expires, None if absent."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        remaining = entry[1] - self._clock()
        return remaining if remaining > 0 else None

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]


_MISSING = object()
