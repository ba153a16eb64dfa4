"""
Append-only log of files moved by the organize engine.
"""

import json
import logging
import threading
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

from ..utils.error_handler import CorruptStoreError
from ..utils.file_utils import read_json, write_json_atomic

logger = logging.getLogger(__name__)


@dataclass
class LogEntry:
    """One successful move."""

    file: str
    movedTo: str
    timestamp: str
    folder: str

    @classmethod
    def now(cls, file: str, moved_to: str, folder: str) -> "LogEntry":
        return cls(
            file=file,
            movedTo=moved_to,
            timestamp=datetime.now().astimezone().isoformat(),
            folder=folder,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MoveLog:
    """Persist move entries in ``log.json``.

    The whole log is rewritten on every append; entries are never pruned
    or deduplicated. ``lock`` serializes read-append-write cycles so passes
    over different folders cannot lose each other's entries.
    """

    def __init__(self, log_file: Union[str, Path]):
        self.log_file = Path(log_file)
        self.lock = threading.RLock()

    def ensure_file(self):
        """Create an empty log if the file does not exist yet."""
        with self.lock:
            if not self.log_file.exists():
                write_json_atomic(self.log_file, [])

    def load(self) -> List[Dict[str, Any]]:
        """Read every log entry.

        Raises:
            CorruptStoreError: If log.json exists but cannot be parsed
        """
        with self.lock:
            if not self.log_file.exists():
                self.ensure_file()
                return []

            try:
                entries = read_json(self.log_file)
            except json.JSONDecodeError as e:
                raise CorruptStoreError(self.log_file, f"invalid JSON: {e}") from e
            except OSError as e:
                raise CorruptStoreError(self.log_file, f"unreadable: {e}") from e

            if not isinstance(entries, list):
                raise CorruptStoreError(self.log_file, "expected a list of entries")

            return entries

    def append(self, new_entries: List[LogEntry]) -> List[Dict[str, Any]]:
        """Append entries and persist the combined log.

        Returns:
            The combined log
        """
        with self.lock:
            combined = self.load() + [e.to_dict() for e in new_entries]
            write_json_atomic(self.log_file, combined)

        if new_entries:
            logger.debug(f"Appended {len(new_entries)} entries to {self.log_file}")
        return combined

    def entries_for_folder(self, folder_path: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return log entries, optionally only those from one source folder."""
        entries = self.load()
        if folder_path is None:
            return entries
        return [e for e in entries if e.get("folder") == folder_path]
