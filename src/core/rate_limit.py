"""Fixed-window rate gate keyed by caller identity.

The relay keys it by client IP; the client-side session controller uses a
single global key so that transcription and synthesis share one window.

Both runtimes drive the limiter from a single event-loop thread, so the
read-then-write in ``check()`` is never interleaved for the same key. A
lock guards the map anyway in case the limiter is called from worker
threads (e.g. a sync endpoint run in the thread pool).
"""

import threading
import time
from collections.abc import Callable


class RateLimiter:
    """Reject a key's request unless ``window`` seconds passed since its last accepted one.

    Args:
        window: Minimum gap in seconds between two accepted checks per key.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        window: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window
        self._clock = clock
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def window(self) -> float:
        return self._window

    def check(self, key: str, now: float | None = None) -> bool:
        """Return True and record ``now`` if ``key`` may proceed.

        A rejected check leaves the stored timestamp untouched, so the window
        always counts from the last *accepted* request.
        """
        if now is None:
            now = self._clock()
        with self._lock:
            last = self._last_seen.get(key)
            if last is not None and now - last < self._window:
                return False
            self._last_seen[key] = now
            return True

