from __future__ import annotations

import logging
import time
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    """
    Coalesces rapid writes into one callback invocation after `delay_seconds` of quiet.

    The host drives it: `schedule()` replaces any pending payload and restarts the
    timer, `poll()` fires once the timer has elapsed, and `flush()` fires right away.
    """

    def __init__(
        self,
        callback: Callable[[T], Any],
        *,
        delay_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "debouncer",
    ) -> None:
        self._callback = callback
        self.delay_seconds = float(delay_seconds)
        self._clock = clock
        self.name = name
        self._pending: Optional[T] = None
        self._has_pending = False
        self._deadline = 0.0
        self.coalesced = 0
        self.writes = 0

    @property
    def pending(self) -> bool:
        return self._has_pending

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline if self._has_pending else None

    def schedule(self, payload: T) -> None:
        if self._has_pending:
            self.coalesced += 1
        self._pending = payload
        self._has_pending = True
        self._deadline = self._clock() + self.delay_seconds

    def poll(self) -> bool:
        if not self._has_pending or self._clock() < self._deadline:
            return False
        return self._fire()

    def flush(self) -> bool:
        if not self._has_pending:
            return False
        return self._fire()

    def cancel(self) -> None:
        self._pending = None
        self._has_pending = False

    def _fire(self) -> bool:
        payload = self._pending
        self._pending = None
        self._has_pending = False
        try:
            self._callback(payload)
        except Exception:
            if not self._has_pending:
                self._pending = payload
                self._has_pending = True
            logger.warning(
                "Debounced write failed; keeping payload for the next flush", extra={"debouncer": self.name}
            )
            raise
        self.writes += 1
        return True
