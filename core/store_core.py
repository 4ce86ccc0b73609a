"""
Store Core - Image Archive Access.

Provides a clean interface to the metadata archive, serving as an
abstraction over utils.db. Each call opens (and closes) its own connection
unless a ConnectionPool is supplied.
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from utils.db import ConnectionPool, Record
from utils.db import closing_connection as _closing_connection
from utils.db import count_records as _count_records
from utils.db import get_db_path as _get_db_path
from utils.db import persist_batch as _persist_batch
from utils.db import query_page as _query_page

logger = logging.getLogger(__name__)


class ImageStore:
    def __init__(self, db_path: Path | None = None, pool: ConnectionPool | None = None):
        self.db_path = Path(db_path) if db_path is not None else _get_db_path()
        self._pool = pool

    @classmethod
    def from_config(cls, config: dict) -> "ImageStore":
        """Builds a store under META_PATH, pooled when DB_POOL_SIZE > 0."""
        db_path = _get_db_path(config["META_PATH"])
        pool_size = config.get("DB_POOL_SIZE", 0)
        pool = ConnectionPool(db_path, pool_size) if pool_size > 0 else None
        return cls(db_path, pool=pool)

    @contextmanager
    def _connection(self):
        if self._pool is not None:
            with self._pool.connection() as conn:
                yield conn
        else:
            with _closing_connection(self.db_path) as conn:
                yield conn

    def persist_batch(self, records: list[Record]) -> list[Record]:
        """Persist records best-effort; returns those that failed."""
        if not records:
            return []
        with self._connection() as conn:
            failed = _persist_batch(conn, records)
        logger.debug(
            f"Persisted {len(records) - len(failed)}/{len(records)} records to {self.db_path}"
        )
        return failed

    def query_page(self, offset: int, limit: int) -> list[Record]:
        """Fetch one page of records in insertion order."""
        with self._connection() as conn:
            return _query_page(conn, offset, limit)

    def count(self) -> int:
        with self._connection() as conn:
            return _count_records(conn)

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
