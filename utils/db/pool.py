"""
Bounded SQLite Connection Pool.

A fixed number of connections are opened up front. ``connection()`` lends
one out for the duration of a ``with`` block and always puts it back,
including when the block raises.
"""

import logging
import queue
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

from utils.db.connection import get_connection

logger = logging.getLogger(__name__)


class PoolClosedError(RuntimeError):
    pass


class ConnectionPool:
    def __init__(self, db_path: Path, size: int, timeout: float | None = 30.0):
        if size < 1:
            raise ValueError("Pool size must be at least 1")
        self._db_path = Path(db_path)
        self._size = size
        self._timeout = timeout
        self._idle: queue.Queue[sqlite3.Connection] = queue.Queue(maxsize=size)
        self._closed = False
        self._lock = threading.Lock()

        for _ in range(size):
            self._idle.put(get_connection(self._db_path))
        logger.debug(f"Opened {size} pooled connections to {self._db_path}")

    @property
    def size(self) -> int:
        return self._size

    def available(self) -> int:
        """Number of idle connections (approximate)."""
        return self._idle.qsize()

    @contextmanager
    def connection(self):
        """
        Borrow a connection.

        Raises:
            PoolClosedError: The pool has been closed.
            TimeoutError: No connection became free within the timeout.
        """
        if self._closed:
            raise PoolClosedError("Connection pool is closed")
        try:
            conn = self._idle.get(timeout=self._timeout)
        except queue.Empty as e:
            raise TimeoutError(
                f"No pooled connection available after {self._timeout}s"
            ) from e

        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    def _release(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            if self._closed:
                conn.close()
                return
            self._idle.put_nowait(conn)

    def close(self) -> None:
        """Closes idle connections; borrowed ones are closed when returned."""
        with self._lock:
            self._closed = True
            while True:
                try:
                    conn = self._idle.get_nowait()
                except queue.Empty:
                    break
                conn.close()
        logger.debug(f"Connection pool for {self._db_path} closed")
