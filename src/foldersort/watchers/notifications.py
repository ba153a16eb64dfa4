"""
Notification sinks for watcher activity.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

LogCallback = Callable[[str, List[Dict[str, Any]]], None]
RunningCallback = Callable[[List[str]], None]


class NotificationSink:
    """Receives move-log updates and changes of the running folder set.

    The base implementation only logs. Hosts that need push updates
    subclass it, or use CallbackNotificationSink.
    """

    def log_updated(self, folder_path: str, log: List[Dict[str, Any]]):
        """Called after every watcher-triggered organize pass."""
        logger.debug(f"Move log updated for {folder_path} ({len(log)} entries)")

    def running_changed(self, paths: List[str]):
        """Called when folders start or stop being watched."""
        if paths:
            logger.info(f"Watching {len(paths)} folder(s): {', '.join(paths)}")
        else:
            logger.info("No folders are being watched")


class CallbackNotificationSink(NotificationSink):
    """Forward notifications to plain callables."""

    def __init__(
        self,
        on_log_updated: Optional[LogCallback] = None,
        on_running_changed: Optional[RunningCallback] = None,
    ):
        self.on_log_updated = on_log_updated
        self.on_running_changed = on_running_changed

    def log_updated(self, folder_path: str, log: List[Dict[str, Any]]):
        super().log_updated(folder_path, log)
        if self.on_log_updated:
            self.on_log_updated(folder_path, log)

    def running_changed(self, paths: List[str]):
        super().running_changed(paths)
        if self.on_running_changed:
            self.on_running_changed(list(paths))
