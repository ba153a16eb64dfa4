import os
import tempfile
import pytest
from pathlib import Path
from foldersort.file_access.local_accessor import FileSystemAccessor, FileInfo


class TestFileSystemAccessor:
    """Test FileSystemAccessor functionality."""

    @pytest.fixture
    def temp_directory(self):
        """Create a temporary directory with test files."""
        with tempfile.TemporaryDirectory() as temp_dir:
            test_files = {
                "report.pdf": b"fake pdf data",
                "notes.TXT": b"fake text data",
                "subdir/nested.png": b"fake png data",
            }

            for file_path, content in test_files.items():
                full_path = Path(temp_dir) / file_path
                full_path.parent.mkdir(parents=True, exist_ok=True)
                full_path.write_bytes(content)

            yield temp_dir

    def test_scan_returns_top_level_files_only(self, temp_directory):
        accessor = FileSystemAccessor(temp_directory)
        files = accessor.scan_files()

        names = sorted(f.name for f in files)
        assert names == ["notes.TXT", "report.pdf"]

    def test_file_info_fields(self, temp_directory):
        accessor = FileSystemAccessor(temp_directory)
        info = {f.name: f for f in accessor.scan_files()}["notes.TXT"]

        assert isinstance(info, FileInfo)
        assert info.path == os.path.join(temp_directory, "notes.TXT")
        assert info.name == "notes.TXT"

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinks_are_skipped(self, temp_directory):
        target = Path(temp_directory) / "report.pdf"
        os.symlink(target, Path(temp_directory) / "link.pdf")

        names = {f.name for f in FileSystemAccessor(temp_directory).scan_files()}
        assert "link.pdf" not in names
        assert "report.pdf" in names

    def test_missing_directory_scans_empty(self, tmp_path):
        accessor = FileSystemAccessor(str(tmp_path / "gone"))

        assert accessor.scan_files() == []
