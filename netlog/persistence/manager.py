"""
Persistence Manager for netlog.

Owns the log store for the lifetime of the process:
- Load the canonical file into a fresh in-memory store at startup
- Flush the store back to the canonical file (atomic tmp + rename)
- Archive timestamped, write-once copies into the backup directory
- Run flush + archive on a fixed interval until shutdown
- Flush one last time on shutdown

Individual inserts never touch the disk.  Anything committed since the last
flush lives only in memory until the next tick or the shutdown flush.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field

from netlog.bus.status_channel import BackupStatusChannel
from netlog.errors import (
    ArchiveError,
    FlushError,
    InitializationError,
    SnapshotDecodeError,
)
from netlog.observability.metrics import TARGET_ARCHIVE, TARGET_PERSISTENT, MetricsCollector
from netlog.store.codec import deserialize, serialize
from netlog.store.log_store import LogStore

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "network_log_backup_"
ARCHIVE_SUFFIX = ".db"
DEFAULT_INTERVAL_SECONDS = 3600.0


class ManagerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


class ArchiveInfo(BaseModel):
    """Metadata about a single archive file."""
    path: str = Field(default="")
    name: str = Field(default="")
    created_at: float = Field(default=0.0)
    size_bytes: int = Field(default=0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def archive_stamp(moment: datetime) -> str:
    """Filesystem-safe UTC stamp, e.g. ``2024-01-01T00-05-00-000Z``."""
    iso = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    iso = iso.replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


def _read_optional(path: str) -> Optional[bytes]:
    """Read *path*, or return ``None`` when it does not exist."""
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None


def _write_atomic(path: str, data: bytes) -> None:
    """Write *data* to *path* via tmp + rename so readers never see a torn file."""
    tmp = path + ".tmp"
    try:
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def _write_exclusive(directory: str, stem: str, data: bytes) -> str:
    """Write *data* under a new name in *directory*; never replaces a file.

    Names are tried in order ``stem.db``, ``stem_1.db``, ``stem_2.db``...
    Each is opened with ``O_CREAT | O_EXCL``, which fails on an existing
    target, so a name already taken is skipped rather than overwritten.
    """
    attempt = 0
    while True:
        suffix = "" if attempt == 0 else f"_{attempt}"
        path = os.path.join(directory, f"{stem}{suffix}{ARCHIVE_SUFFIX}")
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            attempt += 1
            continue
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError:
            os.unlink(path)
            raise
        return path


def _scan_archives(directory: str) -> list[ArchiveInfo]:
    archives: list[ArchiveInfo] = []
    if not os.path.isdir(directory):
        return archives
    for name in os.listdir(directory):
        if not (name.startswith(ARCHIVE_PREFIX) and name.endswith(ARCHIVE_SUFFIX)):
            continue
        path = os.path.join(directory, name)
        try:
            stat = os.stat(path)
        except OSError:
            continue
        archives.append(
            ArchiveInfo(
                path=path,
                name=name,
                created_at=stat.st_mtime,
                size_bytes=stat.st_size,
            )
        )
    archives.sort(key=lambda a: (a.created_at, a.name), reverse=True)
    return archives


# ---------------------------------------------------------------------------
# PersistenceManager
# ---------------------------------------------------------------------------


class PersistenceManager:
    """Loads, flushes and archives the log store.

    Usage::

        mgr = PersistenceManager("/data/network_log.db", "/data/network_backups")
        store = await mgr.load()

        mgr.start_periodic()          # flush + archive every interval
        ...
        await mgr.shutdown()          # stop the timer, final flush

    Every write to disk goes through one ``asyncio.Lock``, so two flushes
    never overlap.  The store is serialized on the event loop thread (no
    await in between), which gives a point-in-time image; only the file
    write runs in a worker thread.
    """

    def __init__(
        self,
        db_path: str,
        backup_dir: str,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        status_channel: Optional[BackupStatusChannel] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Args:
            db_path: Canonical persistent file.
            backup_dir: Directory for timestamped archive copies.
            interval_seconds: Period of the scheduled flush + archive.
            status_channel: Receives a message after each successful archive.
            metrics: Optional Prometheus collector.
            clock: Returns the capture time used to name archives.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._db_path = db_path
        self._backup_dir = backup_dir
        self._interval = interval_seconds
        self._status_channel = status_channel
        self._metrics = metrics
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._store: Optional[LogStore] = None
        self._state = ManagerState.UNINITIALIZED
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._periodic_task: Optional[asyncio.Task[None]] = None

        self._tick_count = 0
        self._last_flush_at: Optional[float] = None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "PersistenceManager":
        kwargs.setdefault("interval_seconds", settings.backup_interval_seconds)
        return cls(settings.db_path, settings.backup_dir, **kwargs)

    # -- accessors -----------------------------------------------------------

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def store(self) -> Optional[LogStore]:
        """The live store, or ``None`` before load / after shutdown."""
        return self._store

    @property
    def accepting_writes(self) -> bool:
        """``True`` only while READY; shutdown closes intake before its final flush."""
        return self._state == ManagerState.READY and self._store is not None

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def backup_dir(self) -> str:
        return self._backup_dir

    @property
    def tick_count(self) -> int:
        """Number of scheduled flush + archive ticks run so far."""
        return self._tick_count

    @property
    def last_flush_at(self) -> Optional[float]:
        return self._last_flush_at

    # -- load ----------------------------------------------------------------

    async def load(self) -> LogStore:
        """Hydrate the store from the canonical file.

        A missing (or empty) file gives an empty store.  Anything else that
        goes wrong raises ``InitializationError``; the file on disk is left
        untouched.
        """
        if self._state != ManagerState.UNINITIALIZED:
            raise RuntimeError(f"Cannot load in state {self._state.value}")

        try:
            db_dir = os.path.dirname(self._db_path)
            if db_dir:
                await asyncio.to_thread(os.makedirs, db_dir, exist_ok=True)
            if not os.path.isdir(self._backup_dir):
                await asyncio.to_thread(os.makedirs, self._backup_dir, exist_ok=True)
                logger.info("Created backup directory: %s", self._backup_dir)

            data = await asyncio.to_thread(_read_optional, self._db_path)
            store = deserialize(data)
        except (OSError, SnapshotDecodeError) as exc:
            logger.critical("Failed to load persistent database %s: %s", self._db_path, exc)
            raise InitializationError(
                f"Could not load persistent database {self._db_path}: {exc}"
            ) from exc

        self._store = store
        self._state = ManagerState.READY

        if data:
            logger.info(
                "Loaded persistent database from %s (%d entries, last_id=%d)",
                self._db_path, store.count(), store.last_id,
            )
        else:
            logger.info("Created new in-memory database (no file at %s)", self._db_path)
        if self._metrics is not None:
            self._metrics.log_entries.set(store.count())
        return store

    # -- flush ---------------------------------------------------------------

    async def flush_persistent(self) -> str:
        """Overwrite the canonical file with the current store.

        Returns the file path.  Raises ``FlushError`` on failure.
        """
        async with self._lock:
            return await self._flush_locked()

    async def _flush_locked(self) -> str:
        store = self._store
        if store is None:
            raise FlushError("Database not initialized. Cannot flush.", path=self._db_path)

        started = time.monotonic()
        try:
            data = serialize(store)
            await asyncio.to_thread(_write_atomic, self._db_path, data)
        except Exception as exc:
            if self._metrics is not None:
                self._metrics.record_flush(TARGET_PERSISTENT, ok=False)
            raise FlushError(
                f"Flush to {self._db_path} failed: {exc}", path=self._db_path,
            ) from exc

        self._last_flush_at = time.time()
        if self._metrics is not None:
            self._metrics.record_flush(TARGET_PERSISTENT, ok=True, duration=time.monotonic() - started)
            self._metrics.last_flush_timestamp.set(self._last_flush_at)
            self._metrics.log_entries.set(store.count())

        logger.info("Database saved to %s (%d bytes)", self._db_path, len(data))
        return self._db_path

    # -- archive -------------------------------------------------------------

    async def archive(self) -> str:
        """Write a new timestamp-named copy of the store.

        Returns the archive path.  Raises ``ArchiveError`` on failure.
        """
        async with self._lock:
            return await self._archive_locked()

    async def _archive_locked(self) -> str:
        store = self._store
        if store is None:
            raise ArchiveError("Database not initialized. Cannot archive.")

        now = self._clock()
        stem = ARCHIVE_PREFIX + archive_stamp(now)
        started = time.monotonic()
        try:
            data = serialize(store)
            path = await asyncio.to_thread(_write_exclusive, self._backup_dir, stem, data)
        except Exception as exc:
            if self._metrics is not None:
                self._metrics.record_flush(TARGET_ARCHIVE, ok=False)
            raise ArchiveError(
                f"Archive {stem} in {self._backup_dir} failed: {exc}", path=self._backup_dir,
            ) from exc

        if self._metrics is not None:
            self._metrics.record_flush(TARGET_ARCHIVE, ok=True, duration=time.monotonic() - started)

        logger.info("Archival backup created: %s", os.path.basename(path))
        if self._status_channel is not None:
            self._status_channel.publish(
                f"Last Auto Backup: {now.astimezone().strftime('%H:%M:%S')}"
            )
        return path

    # -- scheduled flush + archive -------------------------------------------

    async def flush_and_archive(self) -> bool:
        """One scheduled tick: flush the canonical file, then archive.

        Failures are logged, never raised.  Returns ``True`` when both steps
        succeeded.
        """
        if self._store is None:
            logger.warning("Flush + archive skipped: database not initialized")
            return False

        ok = True
        async with self._lock:
            self._tick_count += 1
            try:
                await self._flush_locked()
            except FlushError as exc:
                logger.error("Scheduled flush failed: %s", exc)
                ok = False
            try:
                await self._archive_locked()
            except ArchiveError as exc:
                logger.error("Auto backup failed: %s", exc)
                ok = False
        return ok

    async def schedule_periodic_flush(self) -> None:
        """Run flush + archive every interval until ``stop_periodic``.

        This is a long-running coroutine meant to be wrapped in
        ``asyncio.create_task()``.  The wait is on the stop event, so a stop
        request wakes it immediately; a tick already running finishes first.
        """
        logger.info(
            "Auto backup scheduled every %.0f second(s)", self._interval,
        )
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.flush_and_archive()
            except asyncio.CancelledError:
                logger.info("Periodic flush task cancelled")
                raise
            except Exception as exc:
                logger.error("Periodic flush + archive failed: %s", exc)
        logger.info("Periodic flush task stopped")

    def start_periodic(self) -> asyncio.Task[None]:
        """Start the scheduled flush + archive as a background task.

        Returns the ``asyncio.Task`` so the caller can await it later.
        """
        if self._state != ManagerState.READY:
            raise RuntimeError(f"Cannot schedule flushes in state {self._state.value}")
        if self._periodic_task is not None and not self._periodic_task.done():
            logger.warning("Periodic flush task already running; not starting another")
            return self._periodic_task

        self._stop_event.clear()
        self._periodic_task = asyncio.create_task(
            self.schedule_periodic_flush(),
            name="netlog-periodic-flush",
        )
        return self._periodic_task

    async def stop_periodic(self) -> None:
        """Stop the scheduler, letting an in-flight tick complete."""
        self._stop_event.set()
        task = self._periodic_task
        self._periodic_task = None
        if task is not None and not task.done():
            await task

    # -- shutdown ------------------------------------------------------------

    async def shutdown(self) -> bool:
        """Stop scheduling, flush once more, release the store.

        Returns ``False`` if the final flush failed.  The failure is logged
        at CRITICAL but does not raise, so process exit is never blocked.
        """
        if self._state in (ManagerState.CLOSING, ManagerState.CLOSED):
            return True
        if self._state == ManagerState.UNINITIALIZED:
            self._state = ManagerState.CLOSED
            return True

        self._state = ManagerState.CLOSING
        await self.stop_periodic()

        ok = True
        try:
            await self.flush_persistent()
            logger.info("Final save to persistent file complete before exit")
        except FlushError as exc:
            logger.critical(
                "FINAL PERSISTENCE SAVE FAILED -- entries since the last flush may be lost: %s",
                exc,
            )
            ok = False

        if self._store is not None:
            self._store.database.disconnect()
            self._store = None
        self._state = ManagerState.CLOSED
        return ok

    # -- listing -------------------------------------------------------------

    async def list_archives(self) -> list[ArchiveInfo]:
        """List archive files, newest first.  Nothing is ever deleted."""
        return await asyncio.to_thread(_scan_archives, self._backup_dir)
