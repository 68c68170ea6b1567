"""
Best-effort in-memory rate limiting.

Fixed-window counters keyed by an arbitrary identifier (client IP, user
id, ``"login:" + ip``...). State is per process, so limits are per worker;
that is acceptable for abuse dampening but not for quotas.

Example:
    limiter = RateLimiter(default_limit=100, default_window_seconds=60)

    if not limiter.check(client_ip):
        raise RateLimitException(retry_after=limiter.retry_after(client_ip))
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window request counter."""

    def __init__(
        self,
        default_limit: int = 100,
        default_window_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_limit = default_limit
        self.default_window_seconds = default_window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def check(
        self,
        identifier: str,
        limit: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ) -> bool:
        """
        Count one request for ``identifier``.

        Returns:
            True if the request is allowed, False once the window's limit is reached
        """
        limit = self.default_limit if limit is None else limit
        window_seconds = self.default_window_seconds if window_seconds is None else window_seconds
        now = self._clock()

        window = self._windows.get(identifier)
        if window is None or now > window.reset_at:
            self._windows[identifier] = _Window(count=1, reset_at=now + window_seconds)
            return True

        if window.count >= limit:
            logger.warning(f"Rate limit exceeded for {identifier}")
            return False

        window.count += 1
        return True

    def retry_after(self, identifier: str) -> int:
        """Whole seconds until the identifier's window resets (0 if none)."""
        window = self._windows.get(identifier)
        if window is None:
            return 0
        return max(0, int(window.reset_at - self._clock()) + 1)

    def cleanup(self) -> int:
        """Drop expired windows. Returns the number removed."""
        now = self._clock()
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)
