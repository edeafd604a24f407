"""
Unit tests for file helper utilities.

Tests the file helper functions used by the instruction store and the
settings service.
"""

import pytest
from unittest.mock import patch
from utils.file_helpers import (
    read_text,
    ensure_directories,
    write_text_atomic,
)


class TestFileHelpers:
    """Test file helper utility functions."""

    @pytest.mark.unit
    def test_read_text_existing_file(self, temp_dir):
        """Test reading an existing file."""
        test_file = temp_dir / "test.txt"
        test_file.write_text("line1\nline2", encoding="utf-8")

        assert read_text(test_file) == "line1\nline2"

    @pytest.mark.unit
    def test_read_text_nonexistent_file(self, temp_dir):
        """Test reading a non-existent file."""
        assert read_text(temp_dir / "nonexistent.txt") is None

    @pytest.mark.unit
    def test_ensure_directories_nested(self, temp_dir):
        """Test creating nested directories."""
        nested = temp_dir / "a" / "b" / "c"

        ensure_directories(nested, temp_dir / "other")

        assert nested.is_dir()
        assert (temp_dir / "other").is_dir()

    @pytest.mark.unit
    def test_ensure_directories_existing(self, temp_dir):
        """Test that ensure_directories doesn't fail on existing directories."""
        ensure_directories(temp_dir)

        assert temp_dir.exists()

    @pytest.mark.unit
    def test_write_text_atomic_replaces_content(self, temp_dir):
        """Test that the whole file is replaced and no temp files remain."""
        target = temp_dir / "sub" / "data.json"

        write_text_atomic(target, "first")
        write_text_atomic(target, "second")

        assert target.read_text(encoding="utf-8") == "second"
        assert [p.name for p in target.parent.iterdir()] == ["data.json"]

    @pytest.mark.unit
    def test_write_text_atomic_failure_keeps_original(self, temp_dir):
        """Test that a failed rename leaves the previous content in place."""
        target = temp_dir / "data.json"
        target.write_text("original", encoding="utf-8")

        with patch("utils.file_helpers.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                write_text_atomic(target, "new")

        assert target.read_text(encoding="utf-8") == "original"
        assert [p.name for p in temp_dir.iterdir()] == ["data.json"]
