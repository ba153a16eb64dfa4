"""
Watcher supervisor.

Owns one WatcherState per watched folder. Each state pairs an observation
strategy with a debouncer; debounced changes trigger organize passes on the
engine, and results are pushed to a NotificationSink.
"""

import os
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from watchdog.observers import Observer

from ..organization_logic.engine import OrganizeEngine
from ..organization_logic.watch_registry import WatchRegistry
from ..utils.error_handler import ErrorHandler
from .debounce import Debouncer
from .notifications import NotificationSink
from .strategies import EventDrivenStrategy, ObservationStrategy, PollingStrategy

logger = logging.getLogger(__name__)


@dataclass
class WatcherState:
    """Runtime state of one watched folder."""

    folder_path: str
    interval_ms: int
    strategy: Optional[ObservationStrategy] = None
    debouncer: Optional[Debouncer] = None
    in_flight: bool = False
    rerun: bool = False
    stopped: bool = False
    passes: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class WatcherSupervisor:
    """Start, stop and track folder watchers."""

    def __init__(
        self,
        engine: OrganizeEngine,
        watch_registry: WatchRegistry,
        notification_sink: Optional[NotificationSink] = None,
        error_handler: Optional[ErrorHandler] = None,
        default_interval_ms: int = 5000,
        debounce_ms: int = 400,
        stability_threshold_ms: int = 800,
        stability_poll_ms: int = 100,
        force_polling: bool = False,
        observer_factory: Callable[[], Any] = Observer,
    ):
        """
        Initialize supervisor.

        Args:
            engine: Engine running the organize passes
            watch_registry: Registry of watched folders
            notification_sink: Receiver of log and running-set updates
            error_handler: Recorder for failed passes
            default_interval_ms: Polling interval when none is given
            debounce_ms: Quiet period before a change triggers a pass
            stability_threshold_ms: Time a written file must stay unchanged
            stability_poll_ms: Interval of the write-finish checks
            force_polling: Never try the event-driven observer
            observer_factory: Builds watchdog observers
        """
        self.engine = engine
        self.watch_registry = watch_registry
        self.notification_sink = notification_sink or NotificationSink()
        self.error_handler = error_handler or ErrorHandler()
        self.default_interval_ms = default_interval_ms
        self.debounce_ms = debounce_ms
        self.stability_threshold_ms = stability_threshold_ms
        self.stability_poll_ms = stability_poll_ms
        self.force_polling = force_polling
        self.observer_factory = observer_factory

        self._watchers: Dict[str, WatcherState] = {}
        self._lock = threading.RLock()

    def start(self, folder_path: str, interval_ms: Optional[int] = None) -> bool:
        """
        Start watching a folder.

        Returns:
            True if the folder is being watched afterwards, False if it does
            not exist
        """
        return self._start(folder_path, interval_ms, notify=True)

    def _start(self, folder_path: str, interval_ms: Optional[int], notify: bool) -> bool:
        with self._lock:
            if folder_path in self._watchers:
                return True

            if not os.path.isdir(folder_path):
                logger.warning(f"Cannot watch missing folder: {folder_path}")
                return False

            state = WatcherState(
                folder_path=folder_path,
                interval_ms=interval_ms or self.default_interval_ms,
            )
            state.debouncer = Debouncer(
                self.debounce_ms / 1000.0,
                lambda: self._run_pass(state),
                name=folder_path,
            )
            state.strategy = self._create_strategy(state)
            self._watchers[folder_path] = state

        # Initial pass runs unlocked; in_flight coalesces early change events
        self._run_pass(state)

        logger.info(
            f"Watching {folder_path} ({state.strategy.kind}, "
            f"interval {state.interval_ms}ms)"
        )
        if notify:
            self._notify_running()
        return True

    def _create_strategy(self, state: WatcherState) -> ObservationStrategy:
        on_change = state.debouncer.trigger

        if not self.force_polling:
            strategy = EventDrivenStrategy(
                state.folder_path,
                on_change,
                stability_threshold=self.stability_threshold_ms / 1000.0,
                stability_poll=self.stability_poll_ms / 1000.0,
                observer_factory=self.observer_factory,
            )
            try:
                strategy.start()
                return strategy
            except Exception as e:
                logger.warning(
                    f"Observer unavailable for {state.folder_path} ({e}), "
                    f"falling back to polling every {state.interval_ms}ms"
                )
                self._stop_strategy(strategy)

        strategy = PollingStrategy(
            state.folder_path, on_change, state.interval_ms / 1000.0
        )
        strategy.start()
        return strategy

    def _run_pass(self, state: WatcherState):
        """Run organize passes for a folder, coalescing overlapping triggers."""
        with state.lock:
            if state.stopped:
                return
            if state.in_flight:
                state.rerun = True
                return
            state.in_flight = True

        try:
            while True:
                try:
                    log = self.engine.organize(state.folder_path)
                except Exception as e:
                    self.error_handler.handle_error(
                        e, f"organize pass for {state.folder_path}"
                    )
                else:
                    state.passes += 1
                    self._notify_log(state.folder_path, log)

                with state.lock:
                    if not state.rerun or state.stopped:
                        break
                    state.rerun = False
        finally:
            with state.lock:
                state.in_flight = False
                state.rerun = False

    def stop(self, folder_path: Optional[str] = None) -> bool:
        """
        Stop watching a folder, or every folder when no path is given.

        Stopping a folder that is not watched is a no-op.

        Returns:
            Always True
        """
        if folder_path is None:
            return self.stop_all()

        with self._lock:
            state = self._watchers.pop(folder_path, None)
        if state is None:
            return True

        self._teardown(state)
        logger.info(f"Stopped watching {folder_path}")
        self._notify_running()
        return True

    def stop_all(self) -> bool:
        """Stop every watcher and notify once."""
        with self._lock:
            states = list(self._watchers.values())
            self._watchers.clear()

        for state in states:
            self._teardown(state)

        if states:
            logger.info(f"Stopped {len(states)} watcher(s)")
        self._notify_running()
        return True

    def start_all_from_registry(self, interval_ms: Optional[int] = None) -> bool:
        """
        Start every registered folder that is not disabled.

        Args:
            interval_ms: Polling interval for entries without their own

        Returns:
            True if at least one folder is being watched afterwards
        """
        any_started = False

        for entry in self.watch_registry.read():
            if entry.get("enabled") is False:
                continue

            folder_path = entry.get("path")
            if not isinstance(folder_path, str):
                continue

            try:
                interval = entry.get("autoIntervalMs") or interval_ms
                if self._start(folder_path, interval, notify=False):
                    any_started = True
            except Exception as e:
                logger.error(f"Failed to start watcher for {folder_path}: {e}")

        self._notify_running()
        return any_started

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._watchers)

    def running_paths(self) -> List[str]:
        """Watched paths in the order they were started."""
        with self._lock:
            return list(self._watchers)

    def describe(self) -> List[Dict[str, Any]]:
        """Summaries of the active watchers."""
        with self._lock:
            states = list(self._watchers.values())

        return [
            {
                "path": state.folder_path,
                "strategy": state.strategy.kind if state.strategy else None,
                "interval_ms": state.interval_ms,
                "passes": state.passes,
                "started_at": state.started_at.isoformat(),
            }
            for state in states
        ]

    def _teardown(self, state: WatcherState):
        with state.lock:
            state.stopped = True
        if state.debouncer is not None:
            state.debouncer.close()
        if state.strategy is not None:
            self._stop_strategy(state.strategy)

    def _stop_strategy(self, strategy: ObservationStrategy):
        try:
            strategy.stop()
        except Exception as e:
            logger.error(f"Error stopping {strategy.kind} watcher for {strategy.folder_path}: {e}")

    def _notify_log(self, folder_path: str, log: List[Dict[str, Any]]):
        try:
            self.notification_sink.log_updated(folder_path, log)
        except Exception as e:
            logger.error(f"Log notification failed for {folder_path}: {e}")

    def _notify_running(self):
        try:
            self.notification_sink.running_changed(self.running_paths())
        except Exception as e:
            logger.error(f"Running-set notification failed: {e}")
