"""Tests for scanner module."""

import logging
import os

from fim.models import DIR, UNREADABLE, FileMeta, compute_fingerprint
from fim.scanner import (
    DriftEntry,
    DriftKind,
    DriftReport,
    diff,
    fingerprints,
    iter_directories,
    iter_entries,
    snapshot,
)


def make_tree(root):
    (root / "docs" / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("a")
    (root / "docs" / "b.txt").write_text("b")
    (root / "docs" / "sub" / "c.txt").write_text("c")


class TestWalk:
    """Tests for directory and entry walking."""

    def test_iter_directories_parents_first(self, tmp_path):
        make_tree(tmp_path)

        dirs = list(iter_directories(tmp_path))

        assert dirs == [tmp_path, tmp_path / "docs", tmp_path / "docs" / "sub"]

    def test_iter_directories_is_restartable(self, tmp_path):
        make_tree(tmp_path)

        assert list(iter_directories(tmp_path)) == list(iter_directories(tmp_path))

    def test_iter_directories_skips_symlinks(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        make_tree(root)
        outside = tmp_path / "outside"
        outside.mkdir()
        os.symlink(outside, root / "link", target_is_directory=True)

        assert root / "link" not in list(iter_directories(root))

    def test_iter_directories_missing_start(self, tmp_path):
        assert list(iter_directories(tmp_path / "missing")) == [tmp_path / "missing"]

    def test_iter_entries(self, tmp_path):
        make_tree(tmp_path)

        entries = {key: is_dir for key, _, is_dir in iter_entries(tmp_path)}

        assert entries == {
            "a.txt": False,
            "docs": True,
            "docs/b.txt": False,
            "docs/sub": True,
            "docs/sub/c.txt": False,
        }

    def test_iter_entries_from_subdirectory(self, tmp_path):
        make_tree(tmp_path)

        keys = [key for key, _, _ in iter_entries(tmp_path, tmp_path / "docs")]

        assert sorted(keys) == ["docs/b.txt", "docs/sub", "docs/sub/c.txt"]


class TestSnapshot:
    """Tests for snapshot and fingerprints."""

    def test_snapshot(self, tmp_path):
        make_tree(tmp_path)

        result = snapshot(tmp_path)

        assert result["docs"] == FileMeta.directory()
        assert result["a.txt"].fingerprint == compute_fingerprint(tmp_path / "a.txt")
        assert result["a.txt"].size == 1
        assert result["a.txt"].last_modified_ms > 0
        assert len(result) == 5

    def test_snapshot_skips_file_symlinks(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        os.symlink(tmp_path / "a.txt", tmp_path / "link.txt")

        assert list(snapshot(tmp_path)) == ["a.txt"]

    def test_fingerprints(self, tmp_path):
        make_tree(tmp_path)

        result = fingerprints(snapshot(tmp_path))

        assert result["docs"] == DIR
        assert result["docs/sub/c.txt"] == compute_fingerprint(tmp_path / "docs" / "sub" / "c.txt")


class TestDiff:
    """Tests for diff and DriftReport."""

    def test_no_changes(self):
        entries = {"a.txt": FileMeta(1, 10, "h1"), "docs": FileMeta.directory()}

        report = diff(entries, dict(entries))

        assert report.clean is True
        assert not report

    def test_reports_every_kind(self):
        baseline = {
            "deleted.txt": FileMeta(1, 10, "h1"),
            "gone": FileMeta.directory(),
            "changed.txt": FileMeta(1, 10, "h2"),
            "swapped": FileMeta.directory(),
            "locked.txt": FileMeta(1, 10, "h3"),
        }
        current = {
            "changed.txt": FileMeta(1, 10, "h9"),
            "swapped": FileMeta(1, 10, "h4"),
            "locked.txt": FileMeta(1, 10, UNREADABLE),
            "new.txt": FileMeta(1, 10, "h5"),
            "newdir": FileMeta.directory(),
        }

        report = diff(baseline, current)

        assert report.paths(DriftKind.DELETED_FILE) == ["deleted.txt"]
        assert report.paths(DriftKind.DELETED_FOLDER) == ["gone"]
        assert report.paths(DriftKind.MODIFIED) == ["changed.txt"]
        assert report.paths(DriftKind.TYPE_CHANGED) == ["swapped"]
        assert report.paths(DriftKind.SKIPPED) == ["locked.txt"]
        assert report.paths(DriftKind.NEW_FILE) == ["new.txt"]
        assert report.paths(DriftKind.NEW_FOLDER) == ["newdir"]
        assert len(report) == 7

    def test_metadata_only_change(self):
        baseline = {"a.txt": FileMeta(1, 10, "h1")}
        current = {"a.txt": FileMeta(1, 20, "h1")}

        assert diff(baseline, current).clean is True
        assert diff(baseline, current, compare_metadata=True).paths(DriftKind.MODIFIED) == ["a.txt"]

    def test_log_clean(self, caplog):
        logger = logging.getLogger("test.scanner")
        with caplog.at_level(logging.INFO, logger="test.scanner"):
            DriftReport().log(logger, "No changes detected.")

        assert "[OK] No changes detected." in caplog.text

    def test_log_entries(self, caplog):
        logger = logging.getLogger("test.scanner")
        report = DriftReport([
            DriftEntry(DriftKind.NEW_FILE, "a.txt"),
            DriftEntry(DriftKind.SKIPPED, "b.txt"),
        ])
        with caplog.at_level(logging.INFO, logger="test.scanner"):
            report.log(logger, "unused")

        assert "[NEW FILE] a.txt" in caplog.text
        assert "[SKIPPED] b.txt (unreadable)" in caplog.text
        assert "[OK]" not in caplog.text
