"""
Debouncing of filesystem change bursts.

A burst of change signals for one folder collapses into a single callback
fired once the folder has been quiet for ``delay`` seconds.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DebounceState(Enum):
    """Pending-trigger states of a debouncer."""

    NO_PENDING = "no_pending"
    PENDING = "pending"
    FIRED = "fired"


class Debouncer:
    """Per-folder pending-trigger state machine.

    ``trigger()`` moves to PENDING and (re)arms a timer; when the timer
    elapses without another trigger the callback runs and the state becomes
    FIRED. ``cancel()`` drops a pending timer, and ``close()`` additionally
    ignores every later trigger.
    """

    def __init__(self, delay: float, callback: Callable[[], None], name: str = ""):
        """
        Args:
            delay: Quiet period in seconds
            callback: Function to run once the quiet period elapses
            name: Label used for timer threads and log messages
        """
        self.delay = delay
        self.callback = callback
        self.name = name

        self.state = DebounceState.NO_PENDING
        self.deadline: Optional[float] = None
        self.fire_count = 0

        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._closed = False

    def trigger(self):
        """Register a change signal, restarting the quiet period."""
        with self._lock:
            if self._closed:
                return

            if self._timer is not None:
                self._timer.cancel()

            self._generation += 1
            self._timer = threading.Timer(
                self.delay, self._fire, args=(self._generation,)
            )
            self._timer.daemon = True
            if self.name:
                self._timer.name = f"debounce:{self.name}"
            self.state = DebounceState.PENDING
            self.deadline = time.monotonic() + self.delay
            self._timer.start()

    def _fire(self, generation: int):
        with self._lock:
            # A newer trigger or a cancel supersedes this timer
            if self._closed or generation != self._generation:
                return
            self._timer = None
            self.deadline = None
            self.state = DebounceState.FIRED
            self.fire_count += 1

        try:
            self.callback()
        except Exception as e:
            logger.error(f"Debounced callback failed for {self.name or 'debouncer'}: {e}")

    def cancel(self):
        """Drop any pending trigger without firing it."""
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self.deadline = None
            self.state = DebounceState.NO_PENDING

    def close(self):
        """Cancel and refuse further triggers."""
        with self._lock:
            self._closed = True
        self.cancel()

    @property
    def pending(self) -> bool:
        return self.state == DebounceState.PENDING
