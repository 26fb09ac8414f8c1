"""Cancellable delayed callback."""

import threading
from typing import Callable, Optional


class Debouncer:
    """
    Runs ``callback`` once after ``delay_seconds`` of quiet.

    Every ``trigger()`` cancels the pending timer and starts a new one, so a
    burst of triggers produces a single call. ``timer_factory`` must build
    objects with the ``threading.Timer`` interface (``start``, ``cancel``);
    tests substitute a manually driven clock.
    """

    def __init__(
        self,
        delay_seconds: float,
        callback: Callable[[], None],
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.delay_seconds, lambda: self._fire(generation))
            # Real timers must not keep the interpreter alive
            if isinstance(timer, threading.Thread):
                timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A timer cancelled after it started firing is stale
            if generation != self._generation:
                return
            self._timer = None
        self._callback()
