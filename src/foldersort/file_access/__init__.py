"""
Local filesystem access: folder scanning and file moves.
"""

from .local_accessor import FileInfo, FileSystemAccessor
from .manipulator import FileManipulator, FileOperation

__all__ = ["FileInfo", "FileSystemAccessor", "FileManipulator", "FileOperation"]
