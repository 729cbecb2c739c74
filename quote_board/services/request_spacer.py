from __future__ import annotations

import threading
import time
from typing import Callable


class RequestSpacer:
    """Delay-then-proceed gate keeping provider requests at least
    ``min_interval_sec`` apart, across fetch cycles."""

    def __init__(
        self,
        min_interval_sec: float = 0.5,
        *,
        clock: Callable[[], float] | None = None,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_interval_sec < 0:
            raise ValueError("min_interval_sec must be >= 0")
        self.min_interval_sec = min_interval_sec
        self.clock = clock or time.monotonic
        self.sleep_fn = sleep_fn
        self._lock = threading.Lock()
        self._last_issued_at: float | None = None

        self.turns = 0
        self.delayed_turns = 0
        self.total_delay_sec = 0.0

    def delay_needed(self) -> float:
        with self._lock:
            if self._last_issued_at is None:
                return 0.0
            due = self._last_issued_at + self.min_interval_sec
            return max(due - self.clock(), 0.0)

    def wait_turn(self, cancel_event: threading.Event | None = None) -> bool:
        """Block until the next request may go out. False means cancelled."""
        if cancel_event is not None and cancel_event.is_set():
            return False

        delay = self.delay_needed()
        if delay > 0:
            if cancel_event is not None:
                # Event.wait returns True as soon as the cycle is cancelled
                if cancel_event.wait(delay):
                    return False
            else:
                self.sleep_fn(delay)
            self.delayed_turns += 1
            self.total_delay_sec += delay

        with self._lock:
            self._last_issued_at = self.clock()
            self.turns += 1
        return True

    def reset(self) -> None:
        with self._lock:
            self._last_issued_at = None

    def metrics(self) -> dict[str, float | int]:
        return {
            "spacer_min_interval_sec": self.min_interval_sec,
            "spacer_turns": self.turns,
            "spacer_delayed_turns": self.delayed_turns,
            "spacer_total_delay_sec": round(self.total_delay_sec, 3),
        }
