"""
Error types and error recording for the folder organizer.
Provides the exception hierarchy raised by the stores and a categorizing
error handler used by background watchers, where failures must be recorded
rather than propagated.
"""

import json
import logging
import threading
import traceback
from typing import Any, Dict, List
from datetime import datetime
from pathlib import Path
from enum import Enum

logger = logging.getLogger(__name__)


class FolderSortError(Exception):
    """Base exception for folder organizer failures."""

    pass


class CorruptStoreError(FolderSortError):
    """A persisted store exists but cannot be read or parsed."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Store file is corrupt: {self.path} ({reason})")


class ErrorType(Enum):
    """Categorization of different error types."""

    FILE_ACCESS = "file_access"
    STORE = "store"
    PROCESSING = "processing"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorRecord:
    """Record of an error occurrence."""

    def __init__(
        self,
        error: Exception,
        context: str,
        error_type: ErrorType,
        severity: ErrorSeverity,
    ):
        self.error = error
        self.context = context
        self.error_type = error_type
        self.severity = severity
        self.timestamp = datetime.now()
        self.traceback = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "error": str(self.error),
            "context": self.context,
            "error_type": self.error_type.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "traceback": self.traceback,
        }


class ErrorHandler:
    """Record and categorize errors raised by background work.

    Watcher callbacks run on timer and observer threads; an exception there
    must not end the watch, so the supervisor hands it to ``handle_error``
    which logs it and keeps a bounded history for later inspection.
    """

    def __init__(self, max_history: int = 500):
        """
        Initialize error handler.

        Args:
            max_history: Maximum number of error records kept in memory
        """
        self.max_history = max_history
        self._lock = threading.Lock()
        self.error_history: List[ErrorRecord] = []
        self.error_counts: Dict[ErrorType, int] = {
            error_type: 0 for error_type in ErrorType
        }

    def handle_error(self, error: Exception, context: str) -> ErrorRecord:
        """
        Record an error and log it according to its severity.

        Args:
            error: The exception to handle
            context: Context describing where the error occurred

        Returns:
            The stored ErrorRecord
        """
        error_type = self._categorize_error(error)
        severity = self._determine_severity(error, error_type)

        record = ErrorRecord(error, context, error_type, severity)
        with self._lock:
            self.error_history.append(record)
            if len(self.error_history) > self.max_history:
                del self.error_history[: len(self.error_history) - self.max_history]
            self.error_counts[error_type] += 1

        if severity == ErrorSeverity.CRITICAL:
            logger.critical(f"Error in {context}: {error}")
        elif severity == ErrorSeverity.LOW:
            logger.warning(f"Error in {context}: {error}")
        else:
            logger.error(f"Error in {context}: {error}")
        logger.debug(f"Traceback: {record.traceback}")

        return record

    def _categorize_error(self, error: Exception) -> ErrorType:
        """Categorize the error type."""
        if isinstance(error, CorruptStoreError):
            return ErrorType.STORE
        elif isinstance(error, (FileNotFoundError, PermissionError, OSError)):
            return ErrorType.FILE_ACCESS
        elif isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorType.PROCESSING
        elif isinstance(error, (AttributeError, ImportError)):
            return ErrorType.CONFIGURATION
        else:
            return ErrorType.UNKNOWN

    def _determine_severity(
        self, error: Exception, error_type: ErrorType
    ) -> ErrorSeverity:
        """Determine error severity based on error type and specifics."""
        if error_type == ErrorType.FILE_ACCESS:
            if isinstance(error, PermissionError):
                return ErrorSeverity.HIGH
            elif isinstance(error, FileNotFoundError):
                return ErrorSeverity.LOW
            else:
                return ErrorSeverity.MEDIUM
        elif error_type in (ErrorType.STORE, ErrorType.CONFIGURATION):
            return ErrorSeverity.CRITICAL
        else:
            return ErrorSeverity.HIGH

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get statistics about errors encountered."""
        with self._lock:
            return self._statistics()

    def _statistics(self) -> Dict[str, Any]:
        return {
            "total_errors": sum(self.error_counts.values()),
            "error_counts_by_type": {
                error_type.value: count
                for error_type, count in self.error_counts.items()
            },
            "recent_errors": [error.to_dict() for error in self.error_history[-10:]],
        }

    def clear(self):
        """Forget all recorded errors."""
        with self._lock:
            self.error_history.clear()
            self.error_counts = {error_type: 0 for error_type in ErrorType}

    def save_error_report(self, filepath: Path):
        """Save a detailed error report to file."""
        with self._lock:
            report = {
                "generated_at": datetime.now().isoformat(),
                "statistics": self._statistics(),
                "error_history": [error.to_dict() for error in self.error_history],
            }

        with open(filepath, "w") as f:
            json.dump(report, f, indent=2)

        logger.info(f"Error report saved to {filepath}")

