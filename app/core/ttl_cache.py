import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """Thread-safe key/value cache whose entries expire after a fixed TTL.

    The clock is injectable so tests can move time forward deterministically.
    Expired entries are swept on `set` once every `cleanup_interval` seconds
    (defaults to the TTL), so keys that are never read again do not pile up.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        cleanup_interval: Optional[float] = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.cleanup_interval = cleanup_interval if cleanup_interval is not None else ttl_seconds
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}  # {key: (value, expires_at)}
        self._last_cleanup = clock()
        self.lock = threading.Lock()

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self._last_cleanup = now
        return len(expired)

    def set(self, key: Hashable, value: Any = True, ttl_seconds: Optional[float] = None) -> None:
        now = self.clock()
        expires_at = now + (ttl_seconds if ttl_seconds is not None else self.ttl_seconds)
        with self.lock:
            if now - self._last_cleanup >= self.cleanup_interval:
                self._purge_locked(now)
            self._entries[key] = (value, expires_at)

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self.lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return default
            return value

    def __contains__(self, key: Hashable) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def invalidate(self, key: Hashable) -> bool:
        with self.lock:
            return self._entries.pop(key, None) is not None

    def invalidate_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every entry whose key matches `predicate`. Returns how many were removed."""
        with self.lock:
            matched = [key for key in self._entries if predicate(key)]
            for key in matched:
                del self._entries[key]
        return len(matched)

    def purge_expired(self) -> int:
        """Drop expired entries to prevent memory growth. Returns how many were removed."""
        now = self.clock()
        with self.lock:
            return self._purge_locked(now)

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)
