"""
Utility functions for file operations.
"""

import os
import re
import json
import tempfile
from pathlib import Path
from typing import Any, Union
import logging

logger = logging.getLogger(__name__)


def ensure_directory(directory_path: Union[str, Path]) -> Path:
    """Ensure a directory exists, create if necessary.

    Args:
        directory_path: Path to directory

    Returns:
        Path object for the directory
    """
    path = Path(directory_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_json(file_path: Union[str, Path]) -> Any:
    """Read and parse a JSON document.

    Raises:
        OSError: If the file cannot be read
        json.JSONDecodeError: If the content is not valid JSON
    """
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(file_path: Union[str, Path], data: Any, indent: int = 2):
    """Write a JSON document so readers never observe a partial file.

    The document is written to a temporary file in the same directory and
    then swapped into place with ``os.replace``.

    Args:
        file_path: Destination path
        data: JSON-serializable data
        indent: Indentation for the output
    """
    target = Path(file_path)
    ensure_directory(target.parent)

    fd, temp_path = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, target)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def slugify(name: str) -> str:
    """Collapse whitespace runs in a name into underscores.

    Args:
        name: Human readable name

    Returns:
        Identifier-friendly version of the name
    """
    return re.sub(r"\s+", "_", name)

