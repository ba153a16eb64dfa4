"""
Organization logic module: rules, watched folders, move log and the engine.
"""

from .engine import OrganizeEngine, OrganizationRule
from .move_log import LogEntry, MoveLog
from .rule_manager import RuleStore
from .watch_registry import WatchRegistry

__all__ = [
    "OrganizeEngine",
    "OrganizationRule",
    "LogEntry",
    "MoveLog",
    "RuleStore",
    "WatchRegistry",
]
