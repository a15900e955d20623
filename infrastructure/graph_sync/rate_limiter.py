import time
from threading import Lock
from typing import Any, Mapping, Optional

DEFAULT_THROTTLE_DELAY = 10.0


class RateLimiter:
    """Thread-safe limiter honouring Graph throttling headers (Retry-After)."""

    def __init__(self, max_wait: float = 2.0) -> None:
        self._lock = Lock()
        self._next_ts = 0.0
        self.max_wait = max_wait
        self.last_retry_after: Optional[float] = None
        self.last_status: Optional[int] = None
        self.last_wait: float = 0.0

    def acquire(self) -> None:
        while True:
            with self._lock:
                wait = self._next_ts - time.time()
            if wait <= 0:
                return
            time.sleep(min(wait, self.max_wait))

    def update(self, headers: Mapping[str, Any], status: Optional[int] = None) -> None:
        retry_after = headers.get("Retry-After") or headers.get("retry-after")
        with self._lock:
            now = time.time()
            self.last_status = status
            delay: Optional[float] = None
            if retry_after:
                try:
                    delay = float(retry_after)
                except (TypeError, ValueError):
                    delay = None
            if delay is None and status == 429:
                delay = DEFAULT_THROTTLE_DELAY
            if delay is not None:
                self.last_retry_after = delay
                self._next_ts = max(self._next_ts, now + delay)
            self.last_wait = max(0.0, self._next_ts - now)
