"""
Shared utilities: configuration, logging, errors and JSON file helpers.
"""

from .error_handler import (
    CorruptStoreError,
    ErrorHandler,
    ErrorSeverity,
    ErrorType,
    FolderSortError,
)

__all__ = [
    "CorruptStoreError",
    "ErrorHandler",
    "ErrorSeverity",
    "ErrorType",
    "FolderSortError",
]
