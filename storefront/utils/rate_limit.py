import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Window:
    count: int
    reset_at: float


class LoginRateLimiter:
    """
    Fixed-window attempt counter keyed by client (IP).

    One instance per process, created at import. Counts are not shared
    between instances; a multi-instance deployment needs a shared store.
    """

    def __init__(self, max_attempts: int, window_seconds: int, clock: Callable[[], float] = time.time):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, _Window] = {}

    def hit(self, key: str) -> bool:
        """Record an attempt; False once the key is over its budget"""
        now = self.clock()
        window = self._windows.get(key)

        if window is None or now >= window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return True

        if window.count >= self.max_attempts:
            return False

        window.count += 1
        return True

    def reset(self, key: str) -> None:
        self._windows.pop(key, None)

    def retry_after(self, key: str) -> int:
        window = self._windows.get(key)
        if window is None:
            return 0
        return max(0, int(window.reset_at - self.clock()))
