"""
Database Connection and Schema Management.

This module handles SQLite connection creation and schema initialization
for the image metadata archive.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path

from config import get_config

DB_FILENAME = "fantasy.db"

# Module-level cache: initialize schema once per database path.
# Tests patch META_PATH, so schema init must be keyed by db path (not process-global).
_schema_initialized_paths: set[Path] = set()


def get_db_path(meta_path: str | None = None) -> Path:
    if meta_path is None:
        meta_path = get_config()["META_PATH"]
    meta_dir = Path(meta_path)
    meta_dir.mkdir(parents=True, exist_ok=True)
    return meta_dir / DB_FILENAME


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    db_path = Path(db_path) if db_path is not None else get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    if db_path not in _schema_initialized_paths:
        init_schema(conn)
        _schema_initialized_paths.add(db_path)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def closing_connection(db_path: Path | None = None):
    """Context manager that creates a DB connection and guarantees it is closed.

    IMPORTANT: `with sqlite3.Connection as conn:` only manages transactions
    (commit/rollback); it does NOT call conn.close(). This context manager
    ensures the file descriptor is released when the block exits.

    Usage:
        with closing_connection() as conn:
            conn.execute("SELECT ...")
    """
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_schema(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS img_meta (
            id TEXT PRIMARY KEY,
            formatted_time TEXT NOT NULL,
            epoch_time INTEGER NOT NULL,
            signature TEXT NOT NULL
        );
        """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_img_meta_epoch_time ON img_meta(epoch_time);"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_img_meta_signature ON img_meta(signature);"
    )
    conn.commit()
