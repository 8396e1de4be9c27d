"""netlog -- in-memory relational database layer."""

from netlog.db.connection import SQLITE_HEADER, Database
from netlog.db.models import Base, NetworkLog

__all__ = ["Base", "Database", "NetworkLog", "SQLITE_HEADER"]
