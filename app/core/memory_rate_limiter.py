import time
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional, Tuple

from app.core.config import RATE_LIMITS, DEFAULT_RATE_LIMIT


class MemoryRateLimiter:
    """In-memory sliding window rate limiter"""

    def __init__(self, limits: Optional[Dict[str, Tuple[int, int]]] = None, clock: Callable[[], float] = time.time):
        self.storage: Dict[str, Deque[float]] = {}
        self.lock = threading.Lock()
        self.clock = clock

        # Rate limiting rules from config
        self.limits = limits if limits is not None else RATE_LIMITS

    def _prune(self, key: str, window: int, now: float) -> Deque[float]:
        """Drop timestamps outside the window; keys left empty are removed to prevent memory leaks"""
        timestamps = self.storage.get(key)
        if timestamps is None:
            return deque()

        while timestamps and now - timestamps[0] > window:
            timestamps.popleft()

        if not timestamps:
            del self.storage[key]
        return timestamps

    def is_rate_limited(self, identifier: str, action: str) -> bool:
        """Check if the identifier is rate limited for the given action, counting this attempt"""
        max_attempts, window = self.limits.get(action, DEFAULT_RATE_LIMIT)

        with self.lock:
            key = f"{action}:{identifier}"
            now = self.clock()
            timestamps = self._prune(key, window, now)

            if len(timestamps) >= max_attempts:
                return True

            timestamps.append(now)
            self.storage[key] = timestamps
            return False

    def get_remaining_attempts(self, identifier: str, action: str) -> Dict[str, Any]:
        """Get remaining attempts for identifier"""
        max_attempts, window = self.limits.get(action, DEFAULT_RATE_LIMIT)

        with self.lock:
            key = f"{action}:{identifier}"
            now = self.clock()
            timestamps = self._prune(key, window, now)

            remaining = max(0, max_attempts - len(timestamps))
            reset_in = 0
            if timestamps:
                reset_in = max(0, window - (now - timestamps[0]))

            return {
                "remaining": remaining,
                "reset_in": int(reset_in),
                "max_attempts": max_attempts,
                "window": window,
            }

    def reset_user_limits(self, identifier: str, action: Optional[str] = None) -> bool:
        """Reset rate limits for a user, e.g. after a successful verification"""
        with self.lock:
            if action:
                return self.storage.pop(f"{action}:{identifier}", None) is not None

            keys_to_delete = [k for k in self.storage.keys() if k.endswith(f":{identifier}")]
            for key in keys_to_delete:
                del self.storage[key]
            return len(keys_to_delete) > 0

    def cleanup_old_entries(self) -> int:
        """Cleanup old entries to prevent memory leaks"""
        with self.lock:
            now = self.clock()
            removed = 0
            for key in list(self.storage.keys()):
                action = key.split(':')[0]
                _, window = self.limits.get(action, DEFAULT_RATE_LIMIT)
                if not self._prune(key, window, now):
                    removed += 1
            return removed
