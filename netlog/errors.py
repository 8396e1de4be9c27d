"""Exception hierarchy for netlog."""

from __future__ import annotations


class NetlogError(Exception):
    """Base exception for all netlog errors."""


class SnapshotDecodeError(NetlogError):
    """A non-empty snapshot image could not be decoded into a log store."""


class InitializationError(NetlogError):
    """The persistent file could not be loaded at startup. Fatal."""


class FlushError(NetlogError):
    """Writing the canonical persistent file failed."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class ArchiveError(NetlogError):
    """Writing a timestamped archive copy failed."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class MutationError(NetlogError):
    """An insert or clear against the in-memory store failed."""
