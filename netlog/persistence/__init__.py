"""
Persistence module for netlog.

Loads the log store at startup, flushes it to the canonical file, archives
timestamped copies on a schedule and flushes once more on shutdown.

Core components:
    PersistenceManager -- load / flush / archive / shutdown lifecycle
    ArchiveInfo        -- metadata about one archive file
    ManagerState       -- UNINITIALIZED -> READY -> CLOSING -> CLOSED
"""

from netlog.persistence.manager import (
    ARCHIVE_PREFIX,
    ARCHIVE_SUFFIX,
    ArchiveInfo,
    ManagerState,
    PersistenceManager,
    archive_stamp,
)

__all__ = [
    "ARCHIVE_PREFIX",
    "ARCHIVE_SUFFIX",
    "ArchiveInfo",
    "ManagerState",
    "PersistenceManager",
    "archive_stamp",
]
