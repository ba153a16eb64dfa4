import json
import logging

import pytest

from foldersort.utils.file_utils import ensure_directory, read_json, slugify, write_json_atomic
from foldersort.utils.logging_config import setup_logging


class TestFileUtils:
    def test_write_and_read_json(self, tmp_path):
        target = tmp_path / "nested" / "doc.json"

        write_json_atomic(target, {"watched": []})

        assert read_json(target) == {"watched": []}
        assert [p.name for p in target.parent.iterdir()] == ["doc.json"]

    def test_failed_write_keeps_old_content(self, tmp_path):
        target = tmp_path / "doc.json"
        write_json_atomic(target, [1, 2])

        with pytest.raises(TypeError):
            write_json_atomic(target, [object()])

        assert json.loads(target.read_text()) == [1, 2]
        assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]

    def test_ensure_directory(self, tmp_path):
        path = ensure_directory(tmp_path / "a" / "b")
        assert path.is_dir()

    def test_slugify(self):
        assert slugify("My  Tax\tDocs") == "My_Tax_Docs"


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "foldersort.log"
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level

    try:
        setup_logging("DEBUG", str(log_file))
        logging.getLogger("foldersort.test").info("hello from test")
        for handler in root.handlers:
            handler.flush()

        assert "hello from test" in log_file.read_text()
        assert logging.getLogger("watchdog").level == logging.WARNING
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
