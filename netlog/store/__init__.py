"""
Log store and snapshot codec.

Core components:
    LogStore           -- relational table of events, owns the id counter
    serialize          -- store -> snapshot image
    deserialize        -- snapshot image -> store
    load_snapshot_file -- decode a canonical or archive file from disk
"""

from netlog.store.codec import deserialize, load_snapshot_file, serialize
from netlog.store.log_store import LogEntry, LogStore, SortOrder

__all__ = [
    "LogEntry",
    "LogStore",
    "SortOrder",
    "deserialize",
    "load_snapshot_file",
    "serialize",
]
