import logging
import os
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """The scan root itself could not be read."""

    def __init__(self, root, cause: OSError):
        super().__init__(f"Cannot read scan root {root}: {cause}")
        self.root = root
        self.cause = cause


class DirScanner:
    """
    Recursive, depth-first directory walker.

    Every regular file found below the root is handed to ``sink``.
    Symbolic links are never followed (which also rules out cycles).
    Sibling order is whatever the filesystem yields.
    """

    def __init__(
        self,
        sink: Callable[[Path], None],
        extensions: Iterable[str] | None = None,
        shutdown: threading.Event | None = None,
    ):
        self._sink = sink
        self._extensions = (
            {ext.lower() for ext in extensions} if extensions is not None else None
        )
        self._shutdown = shutdown or threading.Event()
        self._emitted = 0

    def scan(self, root) -> int:
        """
        Walk ``root`` and emit its files.

        Returns:
            Number of paths emitted.

        Raises:
            ScanError: ``root`` is missing or cannot be listed.
        """
        root = Path(root)
        self._emitted = 0
        try:
            entries = os.scandir(root)
        except OSError as e:
            raise ScanError(root, e) from e

        logger.info(f"Scanning {root}")
        with entries:
            self._scan_entries(entries)
        if self._shutdown.is_set():
            logger.info(f"Shutdown requested, scan of {root} stopped early")
        logger.info(f"Scan of {root} finished, {self._emitted} files found")
        return self._emitted

    def _scan_entries(self, entries) -> None:
        for entry in entries:
            if self._shutdown.is_set():
                return
            try:
                if entry.is_symlink():
                    logger.debug(f"Skipping symlink {entry.path}")
                elif entry.is_dir(follow_symlinks=False):
                    self._scan_subdir(entry.path)
                elif entry.is_file(follow_symlinks=False):
                    self._emit(Path(entry.path))
            except OSError as e:
                logger.warning(f"Skipping unreadable entry {entry.path}: {e}")

    def _scan_subdir(self, path: str) -> None:
        try:
            entries = os.scandir(path)
        except OSError as e:
            logger.warning(f"Cannot list directory {path}: {e}")
            return
        with entries:
            self._scan_entries(entries)

    def _emit(self, path: Path) -> None:
        if self._extensions is not None and path.suffix.lower() not in self._extensions:
            return
        self._sink(path)
        self._emitted += 1
