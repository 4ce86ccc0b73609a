"""
Image Metadata Record Operations.

Best-effort batch inserts and paged read-back of the img_meta table.
"""

import logging
import sqlite3
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class Record:
    """
    One persisted image.

    Attributes:
        identifier: Primary key. Generated on insert when None.
        timestamp: Capture time (naive, second precision when read back).
        signature: Content fingerprint of the image.
    """

    identifier: str | None
    timestamp: datetime
    signature: str


def new_identifier() -> str:
    return str(uuid.uuid4())


def to_epoch(ts: datetime) -> int:
    """Reads a naive timestamp as UTC, so the round trip is lossless."""
    return int(ts.replace(tzinfo=timezone.utc).timestamp())


def from_epoch(epoch: int) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).replace(tzinfo=None)


def insert_record(conn: sqlite3.Connection, record: Record) -> Record:
    if record.identifier is None:
        record = replace(record, identifier=new_identifier())
    conn.execute(
        """
        INSERT INTO img_meta (id, formatted_time, epoch_time, signature)
        VALUES (?, ?, ?, ?);
        """,
        (
            record.identifier,
            record.timestamp.strftime(TIME_FORMAT),
            to_epoch(record.timestamp),
            record.signature,
        ),
    )
    conn.commit()
    return record


def persist_batch(conn: sqlite3.Connection, records: list[Record]) -> list[Record]:
    """
    Inserts every record, continuing past row-level failures.

    Returns:
        The records that could not be written (empty list = full success).
    """
    failed = []
    for record in records:
        try:
            insert_record(conn, record)
        except sqlite3.Error as e:
            conn.rollback()
            logger.warning(f"Failed to persist record {record.identifier}: {e}")
            failed.append(record)
    return failed


def query_page(conn: sqlite3.Connection, offset: int, limit: int) -> list[Record]:
    """
    Returns one page of records in the table's natural (insertion) order.

    There is no sort key: pages are stable only while no rows are deleted.
    """
    rows = conn.execute(
        "SELECT id, epoch_time, signature FROM img_meta LIMIT ? OFFSET ?",
        (limit, offset),
    ).fetchall()
    return [
        Record(identifier=row[0], timestamp=from_epoch(row[1]), signature=row[2] or "")
        for row in rows
    ]


def count_records(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) FROM img_meta").fetchone()
    return row[0] if row else 0
