"""Per-user fixed-window rate limiter."""

from dataclasses import dataclass
from typing import Callable, Dict
import time


@dataclass
class _Window:
    count: int
    start: float


class RateLimiter:
    """Fixed-window counter keyed by user id.

    A user may emit at most `max_events` events per `window_seconds`. The
    window restarts on the first event after it expires. State lives in
    process memory only.
    """

    def __init__(
        self,
        max_events: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_events = max_events
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def allow(self, user_id: str) -> bool:
        """Count an event for `user_id` and report whether it may proceed."""
        now = self._clock()
        window = self._windows.get(user_id)
        if window is None or now - window.start >= self.window_seconds:
            self._windows[user_id] = _Window(count=1, start=now)
            return True
        window.count += 1
        return window.count <= self.max_events

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [uid for uid, w in self._windows.items() if now - w.start >= self.window_seconds]
        for uid in expired:
            del self._windows[uid]
        return len(expired)
