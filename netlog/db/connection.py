"""Database connection management.

One in-memory SQLite connection wrapped in a SQLAlchemy 2.0 engine.  The
connection can be hydrated from, and exported to, a SQLite file image so the
whole database moves to and from disk as a single byte buffer.
"""

import logging
import sqlite3
from typing import Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# First 16 bytes of every SQLite database file.
SQLITE_HEADER = b"SQLite format 3\x00"


class Database:
    """In-memory database connection manager."""

    def __init__(self, image: Optional[bytes] = None, echo: bool = False):
        self._image = image
        self._echo = echo
        self._raw: Optional[sqlite3.Connection] = None
        self._engine: Optional[Engine] = None
        self._session_factory = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def connect(self):
        """Open the in-memory connection and build the engine around it.

        Raises ``sqlite3.Error`` if the image cannot be attached.
        """
        raw = sqlite3.connect(":memory:", check_same_thread=False)
        if self._image:
            try:
                raw.deserialize(self._image)
            except sqlite3.Error:
                raw.close()
                raise

        self._raw = raw
        # StaticPool hands out the single connection so every session sees
        # the same in-memory database.
        self._engine = create_engine(
            "sqlite://",
            creator=lambda: raw,
            poolclass=StaticPool,
            echo=self._echo,
        )
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        self._image = None
        logger.debug("In-memory database connected")

    def disconnect(self):
        """Dispose the engine and close the connection."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
        if self._raw is not None:
            self._raw.close()
            self._raw = None
            logger.debug("In-memory database disconnected")

    def get_session(self) -> Session:
        """Get a new session."""
        if not self._session_factory:
            raise RuntimeError("Database not connected")
        return self._session_factory()

    def create_tables(self):
        """Create all tables that do not exist yet."""
        from netlog.db.models import Base
        Base.metadata.create_all(self._require_engine())

    def quick_check(self) -> str:
        """Run ``PRAGMA quick_check`` and return its first result row."""
        with self._require_engine().connect() as conn:
            return str(conn.execute(text("PRAGMA quick_check")).scalar())

    def table_columns(self, table: str) -> Optional[set[str]]:
        """Column names of *table*, or ``None`` when the table is absent."""
        inspector = inspect(self._require_engine())
        if not inspector.has_table(table):
            return None
        return {col["name"] for col in inspector.get_columns(table)}

    def serialize(self) -> bytes:
        """Export the whole database as a SQLite file image."""
        if self._raw is None:
            raise RuntimeError("Database not connected")
        return self._raw.serialize()

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not connected")
        return self._engine
