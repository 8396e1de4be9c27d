"""netlog - Main Application Entry Point.

Orchestrates the services in build order:
1. Configuration loading
2. Logging
3. Observability (metrics)
4. Persistence manager -> load the canonical file into the log store
5. Boundary API (intake, queries, export, backup status)
6. Line collector on stdin (optional)

Shutdown runs in reverse: stop the collector, stop the scheduler, flush the
store one last time.
"""

import argparse
import asyncio
import json
import logging
import logging.config
import signal
import sys
from typing import Optional

from netlog import __version__

# ---------------------------------------------------------------------------
# Logging setup -- called once from main() before the services start
# ---------------------------------------------------------------------------

def setup_logging(log_level: str = "INFO", log_format: str = "json"):
    """Setup structured logging.

    Two modes are supported:
    - ``json``  -- machine-parseable JSON-ish format (default)
    - ``text``  -- human-readable format for local development

    Args:
        log_level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: ``"json"`` or ``"text"``.
    """
    if log_format == "json":
        formatter = {
            "class": "logging.Formatter",
            "format": json.dumps({
                "time": "%(asctime)s",
                "level": "%(levelname)s",
                "module": "%(name)s",
                "message": "%(message)s",
            }),
        }
    else:
        formatter = {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        }
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                # stdout may carry CLI output (list/export), so logs go to stderr
                "stream": "ext://sys.stderr",
            }
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }
    logging.config.dictConfig(config)


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application orchestrator
# ---------------------------------------------------------------------------

class NetlogApplication:
    """Main application orchestrator.

    Usage::

        app = NetlogApplication(settings)
        await app.initialize()
        await app.run()        # blocks until shutdown signal or end of input
        await app.shutdown()
    """

    def __init__(self, settings=None, reader: Optional[asyncio.StreamReader] = None):
        self._settings = settings
        self._reader = reader
        self._metrics = None
        self._status_channel = None
        self._manager = None
        self._api = None
        self._collector = None
        self._tasks: list = []
        self._shutdown_event = asyncio.Event()

    @property
    def api(self):
        return self._api

    @property
    def manager(self):
        return self._manager

    def request_shutdown(self):
        self._shutdown_event.set()

    # ------------------------------------------------------------------
    # Initialisation (strict order)
    # ------------------------------------------------------------------

    async def initialize(self):
        """Initialize all components in dependency order.

        Raises ``InitializationError`` if the canonical file cannot be loaded;
        there is no store to serve in that case.
        """
        # ---- 1. Configuration ----------------------------------------------
        if self._settings is None:
            from netlog.config.settings import get_settings
            self._settings = get_settings()

        logger.info("netlog %s - starting up", __version__)
        logger.info("Persistent file: %s", self._settings.db_path)
        logger.info("Backup directory: %s", self._settings.backup_dir)

        # ---- 2. Observability ----------------------------------------------
        if self._settings.metrics_enabled:
            from netlog.observability.metrics import get_metrics

            self._metrics = get_metrics(self._settings.prometheus_port)
            self._metrics.start_server()
            self._metrics.set_build_info(__version__, self._settings.data_dir)

        # ---- 3. Backup status channel --------------------------------------
        from netlog.bus.status_channel import BackupStatusChannel

        self._status_channel = BackupStatusChannel()
        self._status_channel.subscribe(
            lambda message: logger.info("Backup status: %s", message)
        )

        # ---- 4. Persistence manager + store --------------------------------
        from netlog.persistence.manager import PersistenceManager

        self._manager = PersistenceManager.from_settings(
            self._settings,
            status_channel=self._status_channel,
            metrics=self._metrics,
        )
        await self._manager.load()

        # ---- 5. Boundary API ------------------------------------------------
        from netlog.service.api import NetworkLogApi

        self._api = NetworkLogApi(self._manager, self._status_channel, self._metrics)

        # ---- 6. Line collector ---------------------------------------------
        if self._reader is not None:
            from netlog.collector.line_collector import LineCollector

            self._collector = LineCollector(self._api.intake, self._reader)

        logger.info("All services initialized")

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self):
        """Start the scheduler (and collector) and block until shutdown."""
        self._tasks.append(("periodic_flush", self._manager.start_periodic()))

        if self._collector is not None:
            collector_task = asyncio.create_task(self._collector.start(), name="line_collector")
            # End of input means the probe went away: shut down cleanly.
            collector_task.add_done_callback(lambda _t: self._shutdown_event.set())
            self._tasks.append(("line_collector", collector_task))

        logger.info("netlog running")
        await self._shutdown_event.wait()

    # ------------------------------------------------------------------
    # Graceful shutdown
    # ------------------------------------------------------------------

    async def shutdown(self) -> bool:
        """Stop intake, stop the scheduler, flush once more."""
        logger.info("Shutting down netlog...")

        if self._collector is not None:
            try:
                await self._collector.stop()
            except Exception as exc:
                logger.error("Error stopping line collector: %s", exc)

        for name, task in self._tasks:
            if name == "periodic_flush":
                continue  # awaited by the manager, never cancelled mid-write
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        ok = True
        if self._manager is not None:
            ok = await self._manager.shutdown()

        logger.info("netlog shutdown complete")
        return ok


# ---------------------------------------------------------------------------
# Async entry points
# ---------------------------------------------------------------------------

async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


async def run_service(settings, read_stdin: bool = True) -> int:
    """Run the logger until a signal or end of input.  Returns exit code."""
    from netlog.errors import InitializationError

    reader = None
    if read_stdin:
        try:
            reader = await _stdin_reader()
        except ValueError as exc:
            # regular files cannot back a pipe transport
            logger.warning("Not reading probe results from stdin: %s", exc)
    app = NetlogApplication(settings, reader)

    # Register OS signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        app.request_shutdown()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    exit_code = 0
    try:
        await app.initialize()
        await app.run()
    except InitializationError as exc:
        logger.critical("Critical error during initialization: %s", exc)
        exit_code = 1
    except Exception as exc:
        logger.critical("Fatal error: %s", exc, exc_info=True)
        exit_code = 1
    finally:
        if not await app.shutdown():
            exit_code = exit_code or 2
    return exit_code


def _open_snapshot(path: str):
    from netlog.errors import SnapshotDecodeError
    from netlog.store.codec import load_snapshot_file

    try:
        return load_snapshot_file(path)
    except (OSError, SnapshotDecodeError) as exc:
        logger.error("Cannot open snapshot %s: %s", path, exc)
        return None


def cmd_list(settings, args) -> int:
    from netlog.store.log_store import SortOrder

    store = _open_snapshot(args.source or settings.db_path)
    if store is None:
        return 1
    try:
        for entry in store.query_all(SortOrder.DESC):
            print(f"{entry.id}\t{entry.timestamp}\t{entry.status}")
    finally:
        store.database.disconnect()
    return 0


def cmd_export(settings, args) -> int:
    from netlog.service.export import format_csv
    from netlog.store.log_store import SortOrder

    store = _open_snapshot(args.source or settings.db_path)
    if store is None:
        return 1
    try:
        entries = [entry.to_dict() for entry in store.query_all(SortOrder.ASC)]
    finally:
        store.database.disconnect()

    if not entries:
        logger.warning("No logs to export.")
        return 1
    try:
        with open(args.path, "w", encoding="utf-8", newline="") as f:
            f.write(format_csv(entries))
    except OSError as exc:
        logger.error("CSV Export failed: %s", exc)
        return 1
    logger.info("CSV exported successfully to: %s", args.path)
    return 0


def cmd_archives(settings, args) -> int:
    from netlog.persistence.manager import PersistenceManager

    manager = PersistenceManager.from_settings(settings)
    for info in asyncio.run(manager.list_archives()):
        print(f"{info.name}\t{info.size_bytes}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netlog",
        description="Network connectivity logger with persistent, archived storage.",
    )
    parser.add_argument("--data-dir", help="Override NETLOG_DATA_DIR")
    sub = parser.add_subparsers(dest="command")

    run_p = sub.add_parser("run", help="Record status changes from stdin (default)")
    run_p.add_argument("--no-stdin", action="store_true", help="Do not read probe results from stdin")

    list_p = sub.add_parser("list", help="Print the log, newest first")
    list_p.add_argument("--source", help="Snapshot file to read (default: persistent file)")

    export_p = sub.add_parser("export", help="Export the log as CSV")
    export_p.add_argument("path", help="Destination CSV file")
    export_p.add_argument("--source", help="Snapshot file to read (default: persistent file)")

    sub.add_parser("archives", help="List archive files, newest first")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    from netlog.config.settings import get_settings

    args = build_parser().parse_args(argv)
    settings = get_settings()
    if args.data_dir:
        settings = settings.model_copy(update={"data_dir": args.data_dir})
    setup_logging(settings.log_level, settings.log_format)

    command = args.command or "run"
    if command == "list":
        return cmd_list(settings, args)
    if command == "export":
        return cmd_export(settings, args)
    if command == "archives":
        return cmd_archives(settings, args)
    return asyncio.run(run_service(settings, read_stdin=not getattr(args, "no_stdin", False)))


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
