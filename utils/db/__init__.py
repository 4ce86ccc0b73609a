"""
Image Archive Database Module.

Provides SQLite access for the image metadata archive.
All functions are re-exported here so callers can simply write:

Usage:
    from utils.db import closing_connection, persist_batch, query_page
    # or
    from utils.db.img_meta import persist_batch
"""

# Connection and Schema
from utils.db.connection import (
    DB_FILENAME,
    closing_connection,
    get_connection,
    get_db_path,
    init_schema,
)

# Record Operations
from utils.db.img_meta import (
    TIME_FORMAT,
    Record,
    count_records,
    from_epoch,
    insert_record,
    new_identifier,
    persist_batch,
    query_page,
    to_epoch,
)

# Pooling
from utils.db.pool import ConnectionPool, PoolClosedError

__all__ = [
    # Connection
    "DB_FILENAME",
    "closing_connection",
    "get_connection",
    "get_db_path",
    "init_schema",
    # Records
    "TIME_FORMAT",
    "Record",
    "count_records",
    "from_epoch",
    "insert_record",
    "new_identifier",
    "persist_batch",
    "query_page",
    "to_epoch",
    # Pool
    "ConnectionPool",
    "PoolClosedError",
]
