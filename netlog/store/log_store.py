"""
Log Store -- the relational table of connectivity events.

Owns the ``last_id`` counter.  Ids are handed out as ``last_id + 1`` and the
counter is tracked apart from the rows, so ids keep increasing for as long as
the table holds data.  Only a bulk ``clear()`` resets it.

All methods are synchronous and run on the caller's thread; they never
yield, so a caller on an event loop cannot interleave a mutation with a
snapshot of the same store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from netlog.db.connection import Database
from netlog.db.models import NetworkLog
from netlog.errors import MutationError

logger = logging.getLogger(__name__)


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class LogEntry:
    """Single logged transition.  Never updated once created."""
    id: int
    timestamp: str
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "timestamp": self.timestamp, "status": self.status}


class LogStore:
    """In-memory event table backed by a connected :class:`Database`."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._last_id = self._recover_last_id()

    @property
    def database(self) -> Database:
        return self._db

    @property
    def last_id(self) -> int:
        """Id assigned by the most recent insert (0 when none)."""
        return self._last_id

    # -- writes --------------------------------------------------------------

    def insert(self, status: str, timestamp: str) -> int:
        """Append a new entry and return its id.

        Values are stored as given; well-formedness is the producer's job.
        Raises ``MutationError`` if the transaction fails, in which case
        ``last_id`` is left unchanged.
        """
        new_id = self._last_id + 1
        try:
            with self._db.get_session() as session, session.begin():
                session.add(NetworkLog(id=new_id, timestamp=timestamp, status=status))
        except (SQLAlchemyError, RuntimeError) as exc:
            raise MutationError(f"Insert failed: {exc}") from exc

        self._last_id = new_id
        logger.debug("Inserted log id=%d status=%s timestamp=%s", new_id, status, timestamp)
        return new_id

    def clear(self) -> None:
        """Delete every entry and reset ``last_id`` to 0.  Irreversible."""
        try:
            with self._db.get_session() as session, session.begin():
                session.execute(delete(NetworkLog))
        except (SQLAlchemyError, RuntimeError) as exc:
            raise MutationError(f"Clear failed: {exc}") from exc

        self._last_id = 0
        logger.info("Log store cleared")

    # -- reads ---------------------------------------------------------------

    def query_all(self, order: SortOrder = SortOrder.ASC) -> list[LogEntry]:
        """Return every entry sorted by id in the requested direction."""
        id_col = NetworkLog.id.desc() if order == SortOrder.DESC else NetworkLog.id.asc()
        with self._db.get_session() as session:
            rows = session.execute(
                select(NetworkLog.id, NetworkLog.timestamp, NetworkLog.status).order_by(id_col)
            ).all()
        return [LogEntry(id=row.id, timestamp=row.timestamp, status=row.status) for row in rows]

    def count(self) -> int:
        with self._db.get_session() as session:
            return session.execute(select(func.count()).select_from(NetworkLog)).scalar_one()

    # -- helpers -------------------------------------------------------------

    def _recover_last_id(self) -> int:
        # Derived from the rows, not persisted separately.
        with self._db.get_session() as session:
            max_id = session.execute(select(func.max(NetworkLog.id))).scalar()
        return int(max_id) if max_id is not None else 0
