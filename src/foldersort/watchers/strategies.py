"""
Observation strategies for watched folders.

Two strategies report changes through the same ``on_change`` callback:

- EventDrivenStrategy: a watchdog observer on the top level of the folder.
  Created and modified files only count once their size and modification
  time have stopped changing for the stability threshold, so a file still
  being written does not trigger a pass.
- PollingStrategy: a periodic timer, used when no observer can be started.
"""

import os
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from watchdog.observers import Observer
from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
)

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]


class ObservationStrategy:
    """Common interface of the observation strategies."""

    kind = "base"

    def __init__(self, folder_path: str, on_change: ChangeCallback):
        self.folder_path = folder_path
        self.on_change = on_change
        self._stopped = False

    def start(self):
        raise NotImplementedError

    def stop(self):
        raise NotImplementedError

    def _emit(self):
        if not self._stopped:
            self.on_change()


class FileStabilityTracker:
    """Poll-based detector for files that are still being written.

    A tracked file becomes stable once its (size, mtime) signature has not
    changed for ``threshold`` seconds. Files that vanish are dropped.
    """

    def __init__(self, threshold: float, poll_interval: float):
        self.threshold = threshold
        self.poll_interval = poll_interval
        # path -> (signature, time the signature was last seen changing)
        self._file_state: Dict[str, Tuple[Tuple[int, float], float]] = {}

    def track(self, path: str):
        """Start (or restart) watching a file for stability."""
        signature = self._signature(path)
        if signature is None:
            self._file_state.pop(path, None)
            return
        self._file_state[path] = (signature, time.monotonic())

    def poll(self) -> int:
        """Re-check every tracked file.

        Returns:
            Number of files that became stable during this poll
        """
        now = time.monotonic()
        settled = 0

        for path, (previous, changed_at) in list(self._file_state.items()):
            current = self._signature(path)
            if current is None:
                self._file_state.pop(path, None)
            elif current != previous:
                self._file_state[path] = (current, now)
            elif now - changed_at >= self.threshold:
                self._file_state.pop(path, None)
                settled += 1

        return settled

    @property
    def pending(self) -> bool:
        return bool(self._file_state)

    def clear(self):
        self._file_state.clear()

    @staticmethod
    def _signature(path: str) -> Optional[Tuple[int, float]]:
        try:
            st = os.stat(path)
        except OSError:
            return None
        return st.st_size, st.st_mtime


class _FolderEventHandler(FileSystemEventHandler):
    """Routes watchdog events of one folder to its strategy."""

    def __init__(self, strategy: "EventDrivenStrategy"):
        super().__init__()
        self.strategy = strategy

    def on_any_event(self, event: FileSystemEvent):
        if event.event_type in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
            if event.is_directory:
                # Modifications of the watched folder itself carry no news
                if event.event_type == EVENT_TYPE_CREATED:
                    self.strategy.notify_change()
                return
            self.strategy.await_write_finish(os.fsdecode(event.src_path))
        elif event.event_type in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED):
            self.strategy.notify_change()


class EventDrivenStrategy(ObservationStrategy):
    """Watch the top level of a folder with a watchdog observer."""

    kind = "event"

    def __init__(
        self,
        folder_path: str,
        on_change: ChangeCallback,
        stability_threshold: float = 0.8,
        stability_poll: float = 0.1,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """
        Args:
            folder_path: Folder to observe (non-recursive)
            on_change: Called for every qualifying change
            stability_threshold: Seconds a written file must stay unchanged
            stability_poll: Seconds between stability checks
            observer_factory: Builds the watchdog observer
        """
        super().__init__(folder_path, on_change)
        self.stability = FileStabilityTracker(stability_threshold, stability_poll)
        self._observer_factory = observer_factory
        self._observer = None
        self._lock = threading.Lock()
        self._poll_timer: Optional[threading.Timer] = None

    def start(self):
        """Start the observer.

        Raises:
            Exception: Whatever the platform observer raises when it cannot
                watch the folder; the caller falls back to polling.
        """
        observer = self._observer = self._observer_factory()
        observer.schedule(
            _FolderEventHandler(self), self.folder_path, recursive=False
        )
        observer.start()
        logger.debug(f"Observer started for {self.folder_path}")

    def notify_change(self):
        self._emit()

    def await_write_finish(self, path: str):
        """Report a written file once it has stopped changing."""
        with self._lock:
            if self._stopped:
                return
            self.stability.track(path)
            self._schedule_poll()

    def _schedule_poll(self):
        if self._poll_timer is None and self.stability.pending:
            self._poll_timer = threading.Timer(
                self.stability.poll_interval, self._poll_stability
            )
            self._poll_timer.daemon = True
            self._poll_timer.start()

    def _poll_stability(self):
        with self._lock:
            self._poll_timer = None
            if self._stopped:
                return
            settled = self.stability.poll()
            self._schedule_poll()

        if settled:
            self._emit()

    def stop(self):
        with self._lock:
            self._stopped = True
            if self._poll_timer is not None:
                self._poll_timer.cancel()
                self._poll_timer = None
            self.stability.clear()

        if self._observer is not None:
            self._observer.stop()
            if self._observer.is_alive():
                self._observer.join(timeout=5)
            self._observer = None
            logger.debug(f"Observer stopped for {self.folder_path}")


class PollingStrategy(ObservationStrategy):
    """Report a change every ``interval`` seconds."""

    kind = "polling"

    def __init__(self, folder_path: str, on_change: ChangeCallback, interval: float):
        super().__init__(folder_path, on_change)
        self.interval = interval
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def start(self):
        with self._lock:
            self._stopped = False
            self._schedule()
        logger.debug(f"Polling {self.folder_path} every {self.interval:.1f}s")

    def _schedule(self):
        self._timer = threading.Timer(self.interval, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _tick(self):
        with self._lock:
            if self._stopped:
                return
            self._schedule()
        self._emit()

    def stop(self):
        with self._lock:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
