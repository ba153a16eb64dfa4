"""
Watched folder registry.

Persists the folders registered for continuous organizing in
``watched.json`` as ``{"watched": [...]}``. Each entry is a dictionary with
``id``, ``path``, ``enabled``, ``ruleOverrides`` and optionally
``autoIntervalMs``.

Unlike the rule store, a corrupt registry is tolerated: it only holds
convenience state, so it reads as "no watched folders".
"""

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

from ..utils.file_utils import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class WatchRegistry:
    """Read and write the watched-folder list."""

    def __init__(self, watched_file: Union[str, Path]):
        """
        Initialize registry.

        Args:
            watched_file: Path to the watched folders JSON document
        """
        self.watched_file = Path(watched_file)
        self._lock = threading.RLock()

    def ensure_file(self):
        """Create an empty registry if the file does not exist yet."""
        with self._lock:
            if not self.watched_file.exists():
                write_json_atomic(self.watched_file, {"watched": []})

    def read(self) -> List[Dict[str, Any]]:
        """
        Return the persisted watched-folder list.

        Returns an empty list when the file is missing or corrupt.
        """
        with self._lock:
            if not self.watched_file.exists():
                return []

            try:
                data = read_json(self.watched_file)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(
                    f"Ignoring unreadable watch registry {self.watched_file}: {e}"
                )
                return []

            watched = data.get("watched") if isinstance(data, dict) else None
            if not isinstance(watched, list):
                logger.warning(
                    f"Ignoring malformed watch registry {self.watched_file}"
                )
                return []

            return [w for w in watched if isinstance(w, dict)]

    def write(self, watched: List[Dict[str, Any]]):
        """
        Overwrite the persisted watched-folder list.

        Args:
            watched: Watched folder entries
        """
        with self._lock:
            write_json_atomic(self.watched_file, {"watched": list(watched)})

    def find(self, folder_path: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve the entry registered for a path.

        Returns:
            The entry if found, None otherwise
        """
        for entry in self.read():
            if entry.get("path") == folder_path:
                return entry
        return None

    def get_overrides(self, folder_path: str) -> Dict[str, bool]:
        """Return the rule override map for a path (empty when none)."""
        entry = self.find(folder_path)
        if not entry:
            return {}
        overrides = entry.get("ruleOverrides")
        return dict(overrides) if isinstance(overrides, dict) else {}

    def is_disabled(self, folder_path: str) -> bool:
        """True only if the path is registered with ``enabled`` set to false."""
        entry = self.find(folder_path)
        return bool(entry) and entry.get("enabled") is False

    def add(
        self,
        folder_path: str,
        enabled: bool = True,
        auto_interval_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Register a folder, or return the existing entry for its path.

        Raises:
            ValueError: If folder_path is not absolute
        """
        if not Path(folder_path).is_absolute():
            raise ValueError(f"Watched folder path must be absolute: {folder_path}")

        with self._lock:
            watched = self.read()
            for entry in watched:
                if entry.get("path") == folder_path:
                    return entry

            entry = {
                "id": uuid.uuid4().hex,
                "path": folder_path,
                "enabled": enabled,
                "ruleOverrides": {},
            }
            if auto_interval_ms is not None:
                entry["autoIntervalMs"] = auto_interval_ms

            watched.append(entry)
            self.write(watched)

        logger.info(f"Registered watched folder: {folder_path}")
        return entry

    def remove(self, folder_path: str) -> bool:
        """
        Remove a folder from the registry.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            watched = self.read()
            remaining = [w for w in watched if w.get("path") != folder_path]
            if len(remaining) == len(watched):
                return False
            self.write(remaining)

        logger.info(f"Removed watched folder: {folder_path}")
        return True

    def _update(self, folder_path: str, mutate) -> Dict[str, Any]:
        with self._lock:
            watched = self.read()
            for entry in watched:
                if entry.get("path") == folder_path:
                    mutate(entry)
                    self.write(watched)
                    return entry
        raise KeyError(f"Folder is not registered: {folder_path}")

    def set_enabled(self, folder_path: str, enabled: bool) -> Dict[str, Any]:
        """Enable or disable a registered folder."""

        def mutate(entry):
            entry["enabled"] = bool(enabled)

        return self._update(folder_path, mutate)

    def set_override(
        self, folder_path: str, rule_id: str, enabled: bool
    ) -> Dict[str, Any]:
        """Force a rule on or off for one registered folder."""

        def mutate(entry):
            overrides = entry.get("ruleOverrides")
            if not isinstance(overrides, dict):
                overrides = {}
            overrides[rule_id] = bool(enabled)
            entry["ruleOverrides"] = overrides

        return self._update(folder_path, mutate)

    def clear_override(self, folder_path: str, rule_id: str) -> Dict[str, Any]:
        """Make a rule inherit its global enabled flag again for a folder."""

        def mutate(entry):
            overrides = entry.get("ruleOverrides")
            if isinstance(overrides, dict):
                overrides.pop(rule_id, None)

        return self._update(folder_path, mutate)
