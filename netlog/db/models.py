"""Database models for netlog.

Uses SQLAlchemy 2.0 declarative style.  Ids are assigned by the log store
rather than by SQLite so the counter survives independently of the rows.
"""

from typing import Optional

from sqlalchemy import Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class NetworkLog(Base):
    """One connectivity transition (UP/DOWN) with its ISO-8601 timestamp."""
    __tablename__ = "network_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    timestamp: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# Columns a snapshot image must carry for the table to be usable.
REQUIRED_COLUMNS = frozenset({"id", "timestamp", "status"})
