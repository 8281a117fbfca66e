"""Keystroke debouncing for search inputs."""
import time
from typing import Callable, Optional, Tuple


class Debouncer:
    """
    Collapses a burst of calls into the last one.

    `push` records a value; `due` hands it back once `delay` seconds have
    passed without another push. A later push always replaces an earlier
    pending value, so the last keystroke wins.
    """

    def __init__(self, delay: float = 0.3, clock: Callable[[], float] = time.monotonic):
        self.delay = delay
        self._clock = clock
        self._pending: Optional[Tuple[float, str]] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def push(self, value: str) -> None:
        self._pending = (self._clock(), value)

    def due(self) -> Optional[str]:
        """Pending value if it has settled, else None. A returned value is consumed."""
        if self._pending is None:
            return None
        pushed_at, value = self._pending
        if self._clock() - pushed_at < self.delay:
            return None
        self._pending = None
        return value

    def cancel(self) -> None:
        self._pending = None
