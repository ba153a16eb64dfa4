"""
Organize engine: applies the ordered rule list to the files of a folder.
"""

import os
import logging
import threading
from pathlib import Path
from typing import Dict, Any, List, Optional, Set, Tuple

from ..file_access.local_accessor import FileSystemAccessor
from ..file_access.manipulator import FileManipulator
from .move_log import MoveLog, LogEntry
from .rule_manager import RuleStore, destination_error
from .watch_registry import WatchRegistry

logger = logging.getLogger(__name__)


class OrganizationRule:
    """Represents a single organization rule."""

    def __init__(self, rule_dict: Dict[str, Any]):
        """Initialize rule from dictionary.

        Args:
            rule_dict: Dictionary containing rule definition
        """
        self.id = rule_dict.get("id")
        self.name = rule_dict.get("name") or self.id or "Unnamed Rule"
        self.type = rule_dict.get("type")
        self.name_pattern = rule_dict.get("namePattern")
        self.destination = rule_dict.get("destination")
        self.enabled = rule_dict.get("enabled") is not False

    def is_enabled_for(self, overrides: Dict[str, Any]) -> bool:
        """Whether the rule applies in a folder with the given overrides.

        A per-folder override for this rule id wins over the rule's own
        enabled flag.
        """
        if self.id is not None and self.id in overrides:
            return bool(overrides[self.id])
        return self.enabled

    def matches(self, file_name: str) -> bool:
        """Check if rule matches the given file name.

        ``type`` is compared as a case-insensitive suffix and
        ``namePattern`` as a case-insensitive prefix. Either one matching is
        enough; unset conditions never match.

        Args:
            file_name: Bare file name (no directory)

        Returns:
            True if rule matches
        """
        file_lower = file_name.lower() if isinstance(file_name, str) else ""

        if self.type and isinstance(self.type, str):
            if file_lower.endswith(self.type.lower()):
                return True

        if self.name_pattern and isinstance(self.name_pattern, str):
            if file_lower.startswith(self.name_pattern.lower()):
                return True

        return False


class OrganizeEngine:
    """Engine for moving the files of a folder according to rules."""

    def __init__(
        self,
        rule_store: RuleStore,
        watch_registry: WatchRegistry,
        move_log: MoveLog,
        file_manipulator: Optional[FileManipulator] = None,
    ):
        """Initialize organize engine.

        Args:
            rule_store: Source of the ordered rule list
            watch_registry: Source of per-folder enabled flags and overrides
            move_log: Log receiving one entry per successful move
            file_manipulator: Service performing the moves
        """
        self.rule_store = rule_store
        self.watch_registry = watch_registry
        self.move_log = move_log
        self.file_manipulator = file_manipulator or FileManipulator()

        self._folder_locks: Dict[str, threading.Lock] = {}
        self._folder_locks_guard = threading.Lock()
        self._reported_rules: Set[Tuple[str, str]] = set()

    def _folder_lock(self, folder_path: str) -> threading.Lock:
        with self._folder_locks_guard:
            lock = self._folder_locks.get(folder_path)
            if lock is None:
                lock = self._folder_locks[folder_path] = threading.Lock()
            return lock

    def find_matching_rule(
        self,
        file_name: str,
        rules: List[OrganizationRule],
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Optional[OrganizationRule]:
        """Find the first enabled rule in list order that matches a file.

        Args:
            file_name: Bare file name
            rules: Rules in evaluation order
            overrides: Per-folder rule overrides

        Returns:
            First matching rule or None
        """
        overrides = overrides or {}

        for rule in rules:
            if not rule.is_enabled_for(overrides):
                continue
            if rule.matches(file_name):
                return rule

        return None

    def _usable_rules(self, rule_dicts: List[Dict[str, Any]]) -> List[OrganizationRule]:
        rules = []
        for rule_dict in rule_dicts:
            problem = destination_error(rule_dict.get("destination"))
            if problem:
                # Report each unusable rule once, not on every pass
                key = (str(rule_dict.get("id")), str(rule_dict.get("destination")))
                if key not in self._reported_rules:
                    self._reported_rules.add(key)
                    logger.warning(f"Ignoring rule {rule_dict.get('id')}: {problem}")
                continue
            rules.append(OrganizationRule(rule_dict))
        return rules

    def _should_skip(self, folder_path: str) -> bool:
        if not os.path.isdir(folder_path):
            logger.debug(f"Folder does not exist, nothing to organize: {folder_path}")
            return True

        if self.watch_registry.is_disabled(folder_path):
            logger.debug(f"Folder is disabled, skipping: {folder_path}")
            return True

        return False

    def organize(self, folder_path: str) -> List[Dict[str, Any]]:
        """Run one organize pass over the top level of a folder.

        Files matched by a rule are moved into the rule's destination
        subfolder. A file that cannot be moved is skipped and the pass goes
        on with the next file. Passes over the same folder never overlap.

        Args:
            folder_path: Folder to organize

        Returns:
            The combined move log after the pass

        Raises:
            CorruptStoreError: If the rules or the log cannot be read
        """
        with self._folder_lock(folder_path):
            rules = self._usable_rules(self.rule_store.load())
            existing_log = self.move_log.load()

            if self._should_skip(folder_path):
                return existing_log

            overrides = self.watch_registry.get_overrides(folder_path)
            accessor = FileSystemAccessor(folder_path)

            new_entries = []
            for file_info in accessor.scan_files():
                rule = self.find_matching_rule(file_info.name, rules, overrides)
                if rule is None:
                    continue

                destination_dir = Path(folder_path) / rule.destination
                if self.file_manipulator.move_into(file_info.path, str(destination_dir)):
                    new_entries.append(
                        LogEntry.now(file_info.name, rule.destination, folder_path)
                    )

            combined = self.move_log.append(new_entries)

        if new_entries:
            logger.info(f"Organized {len(new_entries)} file(s) in {folder_path}")
        return combined

    def preview(self, folder_path: str) -> List[Dict[str, Any]]:
        """Report what an organize pass would move, without moving anything.

        Args:
            folder_path: Folder to inspect

        Returns:
            List of planned moves with file, destination and rule id
        """
        rules = self._usable_rules(self.rule_store.load())

        if self._should_skip(folder_path):
            return []

        overrides = self.watch_registry.get_overrides(folder_path)
        plan = []
        for file_info in FileSystemAccessor(folder_path).scan_files():
            rule = self.find_matching_rule(file_info.name, rules, overrides)
            if rule is not None:
                plan.append(
                    {
                        "file": file_info.name,
                        "destination": rule.destination,
                        "rule": rule.id,
                    }
                )
        return plan
