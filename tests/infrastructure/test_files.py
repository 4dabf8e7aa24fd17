"""Tests for the filesystem helpers."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from sales_vault.infrastructure.files import (
    atomic_write_text,
    create_exclusive,
    ensure_dir,
    iter_markdown,
    read_text,
)


class TestWrites:
    """Test atomic and exclusive writes."""

    def test_atomic_write_replaces(self, tmp_path: Path) -> None:
        target = tmp_path / "deep" / "note.md"
        atomic_write_text(target, "one")
        atomic_write_text(target, "two")
        assert target.read_text() == "two"
        assert [p.name for p in target.parent.iterdir()] == ["note.md"]

    def test_create_exclusive(self, tmp_path: Path) -> None:
        target = tmp_path / "a.md"
        assert create_exclusive(target, "first") is True
        assert create_exclusive(target, "second") is False
        assert target.read_text() == "first"
        assert [p.name for p in tmp_path.iterdir()] == ["a.md"]

    def test_failed_create_leaves_nothing(self, tmp_path: Path, monkeypatch) -> None:
        def refuse(src: str, dst: Path) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(os, "link", refuse)
        target = tmp_path / "a.md"
        with pytest.raises(OSError, match="disk full"):
            create_exclusive(target, "first")
        assert list(tmp_path.iterdir()) == []

    def test_ensure_dir(self, tmp_path: Path) -> None:
        assert ensure_dir(tmp_path / "x" / "y") is True
        assert ensure_dir(tmp_path / "x" / "y") is False


class TestReads:
    """Test tolerant reads and markdown scans."""

    def test_read_missing(self, tmp_path: Path) -> None:
        assert read_text(tmp_path / "nope.md") is None

    def test_read_undecodable(self, tmp_path: Path) -> None:
        path = tmp_path / "bin.md"
        path.write_bytes(b"\xff\xfe\xfa")
        assert read_text(path) is None

    def test_iter_markdown_skips_hidden(self, tmp_path: Path) -> None:
        (tmp_path / "b.md").write_text("")
        (tmp_path / "a.md").write_text("")
        (tmp_path / "notes.txt").write_text("")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.md").write_text("")
        (tmp_path / ".trash").mkdir()
        (tmp_path / ".trash" / "d.md").write_text("")
        (tmp_path / ".a.md.123.tmp").write_text("")

        names = [p.relative_to(tmp_path).as_posix() for p in iter_markdown(tmp_path)]
        assert names == ["a.md", "b.md", "sub/c.md"]

    def test_iter_missing_directory(self, tmp_path: Path) -> None:
        assert iter_markdown(tmp_path / "missing") == []
