import os
import stat
from pathlib import Path
from typing import List
import logging
from dataclasses import dataclass


@dataclass
class FileInfo:
    """Data class to hold file information."""

    path: str
    name: str


class FileSystemAccessor:
    """Lists the immediate regular files of a folder."""

    def __init__(self, root_directory: str):
        """Initialize the file system accessor.

        Args:
            root_directory: The directory to scan
        """
        self.root_directory = Path(root_directory)
        self.logger = logging.getLogger(__name__)

    def list_entry_names(self) -> List[str]:
        """Return the names of all immediate entries, unsorted.

        Raises:
            OSError: If the directory cannot be listed
        """
        return os.listdir(self.root_directory)

    def scan_files(self) -> List[FileInfo]:
        """Scan the top level of the directory for regular files.

        Directories, symlinks and special files are skipped. Entries that
        disappear or cannot be stat'ed while scanning are skipped as well.

        Returns:
            List of FileInfo objects in listing order
        """
        try:
            names = self.list_entry_names()
        except OSError as e:
            self.logger.warning(f"Cannot list {self.root_directory}: {e}")
            return []

        file_list = []
        for name in names:
            file_path = self.root_directory / name
            try:
                st = os.lstat(file_path)
            except OSError as e:
                self.logger.debug(f"Skipping unreadable entry {file_path}: {e}")
                continue

            if not stat.S_ISREG(st.st_mode):
                continue

            file_list.append(
                FileInfo(
                    path=str(file_path),
                    name=name,
                )
            )

        self.logger.debug(f"Found {len(file_list)} files in {self.root_directory}")
        return file_list
