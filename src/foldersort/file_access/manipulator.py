"""
File manipulation service for moving files into rule destinations.
"""

import shutil
import logging
from collections import deque
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass
class FileOperation:
    """Represents a file operation."""

    operation_type: str
    source_path: str
    target_path: str
    timestamp: str
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class FileManipulator:
    """Service for moving files into destination subfolders.

    Moves never overwrite: a file already present at the target makes the
    move fail, and the caller is expected to skip that file.
    """

    def __init__(self, history_size: int = 1000):
        """Initialize file manipulator.

        Args:
            history_size: Number of operations kept in the in-memory log
        """
        self.operations_log = deque(maxlen=history_size)
        self.moved_count = 0
        self.failed_count = 0

    def move_into(self, source_path: str, destination_dir: str) -> bool:
        """Move a file into a directory, keeping its name.

        The destination directory is created (recursively) when missing.

        Args:
            source_path: Path to source file
            destination_dir: Directory the file should end up in

        Returns:
            True if the file was moved
        """
        source = Path(source_path)
        target_dir = Path(destination_dir)
        target = target_dir / source.name

        operation = FileOperation(
            operation_type="move",
            source_path=str(source),
            target_path=str(target),
            timestamp=datetime.now().isoformat(),
            success=False,
        )

        if not self._create_directory(target_dir):
            operation.error = "Could not create destination directory"
            self._log_operation(operation)
            return False

        if not source.exists():
            operation.error = "Source file not found"
            logger.warning(f"Source file vanished before move: {source}")
            self._log_operation(operation)
            return False

        if target.exists() or target.is_symlink():
            operation.error = "Target already exists"
            logger.warning(f"Not moving {source.name}: {target} already exists")
            self._log_operation(operation)
            return False

        try:
            shutil.move(str(source), str(target))
            operation.success = True
            logger.info(f"Moved: {source} -> {target}")
        except Exception as e:
            operation.error = str(e)
            logger.error(f"Failed to move {source}: {e}")

        self._log_operation(operation)
        return operation.success

    def _create_directory(self, directory: Path) -> bool:
        """Create directory if it doesn't exist.

        Args:
            directory: Directory path

        Returns:
            True if successful
        """
        try:
            directory.mkdir(parents=True, exist_ok=True)
            return True
        except Exception as e:
            logger.error(f"Failed to create directory {directory}: {e}")
            return False

    def _log_operation(self, operation: FileOperation):
        """Log an operation.

        Args:
            operation: Operation to log
        """
        self.operations_log.append(operation)
        if operation.success:
            self.moved_count += 1
        else:
            self.failed_count += 1

    def get_operation_summary(self) -> Dict[str, Any]:
        """Get summary of recorded operations.

        Returns:
            Summary dictionary
        """
        operations = list(self.operations_log)

        return {
            "total_operations": self.moved_count + self.failed_count,
            "successful": self.moved_count,
            "failed": self.failed_count,
            "recent_failures": [op.to_dict() for op in operations if not op.success][
                -10:
            ],
        }
