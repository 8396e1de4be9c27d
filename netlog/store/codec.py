"""
Snapshot codec for the log store.

A snapshot is the SQLite file image of the whole in-memory database.  The
same format is used for the canonical persistent file and for every archive
copy, so any of them can be opened on its own.

    data = serialize(store)
    restored = deserialize(data)       # same entries, same last_id

An empty or missing buffer decodes to a fresh empty store.  A non-empty
buffer that is not a usable image raises ``SnapshotDecodeError``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from netlog.db.connection import SQLITE_HEADER, Database
from netlog.db.models import REQUIRED_COLUMNS, NetworkLog
from netlog.errors import SnapshotDecodeError
from netlog.store.log_store import LogStore

logger = logging.getLogger(__name__)


def serialize(store: LogStore) -> bytes:
    """Capture a point-in-time image of *store*."""
    return store.database.serialize()


def deserialize(data: Optional[bytes]) -> LogStore:
    """Build a connected :class:`LogStore` from a snapshot image."""
    if not data:
        db = Database()
        db.connect()
        db.create_tables()
        return LogStore(db)

    if bytes(data[: len(SQLITE_HEADER)]) != SQLITE_HEADER:
        raise SnapshotDecodeError(
            f"Snapshot has invalid header: {bytes(data[:16])!r}"
        )

    db = Database(bytes(data))
    try:
        db.connect()
        check = db.quick_check()
        if check != "ok":
            raise SnapshotDecodeError(f"Snapshot failed integrity check: {check}")

        columns = db.table_columns(NetworkLog.__tablename__)
        if columns is not None and not REQUIRED_COLUMNS <= columns:
            missing = ", ".join(sorted(REQUIRED_COLUMNS - columns))
            raise SnapshotDecodeError(
                f"Snapshot table {NetworkLog.__tablename__} is missing columns: {missing}"
            )

        db.create_tables()
        return LogStore(db)
    except SnapshotDecodeError:
        db.disconnect()
        raise
    except (sqlite3.Error, SQLAlchemyError) as exc:
        db.disconnect()
        raise SnapshotDecodeError(f"Snapshot could not be decoded: {exc}") from exc


def load_snapshot_file(path: str) -> LogStore:
    """Decode the snapshot stored at *path*.

    A missing file yields an empty store.  Other ``OSError``s propagate.
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except FileNotFoundError:
        logger.info("No snapshot at %s; starting empty", path)
        return deserialize(None)
    return deserialize(data)
