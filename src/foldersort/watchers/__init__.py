"""
Continuous organizing of watched folders.
"""

from .debounce import DebounceState, Debouncer
from .notifications import CallbackNotificationSink, NotificationSink
from .strategies import EventDrivenStrategy, PollingStrategy
from .supervisor import WatcherSupervisor

__all__ = [
    "DebounceState",
    "Debouncer",
    "CallbackNotificationSink",
    "NotificationSink",
    "EventDrivenStrategy",
    "PollingStrategy",
    "WatcherSupervisor",
]
