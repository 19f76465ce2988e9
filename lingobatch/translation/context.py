"""
Run-scoped shared state.

One RunContext exists per run. The scheduler, the backend client and the
driver all hold a reference to the same instance; nothing copies it.

All mutation happens on the event loop thread between suspension points,
so the cursor and the error counter need no lock. Cancellation may be
requested from another thread (the web layer), hence the Event.
"""

import threading
import time
from typing import Optional, Sequence

from lingobatch.ai.exceptions import ConfigError


class RunContext:
    """Credential cursor, cumulative error counter and cancellation flag for one run."""

    def __init__(self, keys: Sequence[str], max_errors: int):
        if not keys:
            raise ConfigError("At least one valid API key is required")
        self.keys = tuple(keys)
        self.max_errors = max_errors
        self.cursor = 0
        self.error_count = 0
        self.backend_calls = 0
        self.started_at = time.time()
        self._cancel_event = threading.Event()

    def next_credential(self) -> str:
        """Return the key under the cursor and advance it (round robin)."""
        key = self.keys[self.cursor]
        self.cursor = (self.cursor + 1) % len(self.keys)
        self.backend_calls += 1
        return key

    def record_error(self) -> int:
        """Count one failed backend attempt; returns the run-wide total."""
        self.error_count += 1
        return self.error_count

    @property
    def error_budget_exhausted(self) -> bool:
        return self.error_count >= self.max_errors

    def request_cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def elapsed(self, now: Optional[float] = None) -> float:
        return (now or time.time()) - self.started_at
