"""
Tests for the recursive directory scanner.
"""

import logging
import os
import threading
from pathlib import Path

import pytest

from utils.dir_scanner import DirScanner, ScanError


@pytest.fixture
def photo_tree(tmp_path):
    """
    root/
      a.jpg
      notes.txt
      2020/
        b.JPG
        trip/
          c.png
      empty/
    """
    root = tmp_path / "root"
    (root / "2020" / "trip").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "a.jpg").write_bytes(b"a")
    (root / "notes.txt").write_text("n")
    (root / "2020" / "b.JPG").write_bytes(b"b")
    (root / "2020" / "trip" / "c.png").write_bytes(b"c")
    return root


def _collect(root, **kwargs) -> tuple[int, list[Path]]:
    found: list[Path] = []
    count = DirScanner(found.append, **kwargs).scan(root)
    return count, found


def test_emits_every_regular_file(photo_tree):
    count, found = _collect(photo_tree)

    assert count == 4
    # Order is filesystem dependent
    assert sorted(p.relative_to(photo_tree).as_posix() for p in found) == [
        "2020/b.JPG",
        "2020/trip/c.png",
        "a.jpg",
        "notes.txt",
    ]


def test_extension_filter_is_case_insensitive(photo_tree):
    count, found = _collect(photo_tree, extensions=[".jpg", ".png"])

    assert count == 3
    assert {p.name for p in found} == {"a.jpg", "b.JPG", "c.png"}


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_symlinks_are_never_followed(photo_tree, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "x.jpg").write_bytes(b"x")
    try:
        os.symlink(outside, photo_tree / "link_dir")
        os.symlink(photo_tree / "a.jpg", photo_tree / "link_file.jpg")
        # A cycle back to the root must not loop forever
        os.symlink(photo_tree, photo_tree / "2020" / "loop")
    except OSError:
        pytest.skip("cannot create symlinks here")

    _, found = _collect(photo_tree)

    names = {p.name for p in found}
    assert "x.jpg" not in names
    assert "link_file.jpg" not in names
    assert len(found) == 4


def test_missing_root_is_fatal(tmp_path):
    with pytest.raises(ScanError) as exc_info:
        DirScanner(lambda p: None).scan(tmp_path / "nope")
    assert exc_info.value.root == tmp_path / "nope"


def test_root_that_is_a_file_is_fatal(tmp_path):
    f = tmp_path / "file.jpg"
    f.write_bytes(b"x")
    with pytest.raises(ScanError):
        DirScanner(lambda p: None).scan(f)


def test_unreadable_subdirectory_is_skipped(photo_tree, monkeypatch, caplog):
    real_scandir = os.scandir
    locked = photo_tree / "2020"

    def _scandir(path):
        if Path(path) == locked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr("utils.dir_scanner.os.scandir", _scandir)

    with caplog.at_level(logging.WARNING, logger="utils.dir_scanner"):
        count, found = _collect(photo_tree)

    assert count == 2
    assert {p.name for p in found} == {"a.jpg", "notes.txt"}
    assert any(
        "Cannot list directory" in r.getMessage() and str(locked) in r.getMessage()
        for r in caplog.records
    )


def test_shutdown_stops_the_walk(photo_tree):
    shutdown = threading.Event()
    found: list[Path] = []

    def _sink(path):
        found.append(path)
        shutdown.set()

    DirScanner(_sink, shutdown=shutdown).scan(photo_tree)

    assert len(found) == 1


def test_shutdown_is_logged_once_per_scan(photo_tree, caplog):
    shutdown = threading.Event()
    found: list[Path] = []

    def _sink(path):
        found.append(path)
        shutdown.set()

    with caplog.at_level(logging.INFO, logger="utils.dir_scanner"):
        DirScanner(_sink, shutdown=shutdown).scan(photo_tree)

    stopped = [r for r in caplog.records if "Shutdown requested" in r.getMessage()]
    assert len(stopped) == 1
    assert str(photo_tree) in stopped[0].getMessage()


def test_completed_scan_does_not_log_shutdown(photo_tree, caplog):
    with caplog.at_level(logging.INFO, logger="utils.dir_scanner"):
        _collect(photo_tree)

    assert not any("Shutdown requested" in r.getMessage() for r in caplog.records)
