"""Query surface -- read-only projections of the log plus the bulk clear."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from netlog.errors import FlushError, MutationError
from netlog.persistence.manager import PersistenceManager
from netlog.service.results import CLEARED_NOT_PERSISTED, NOT_READY, OperationResult
from netlog.store.log_store import SortOrder

logger = logging.getLogger(__name__)


class LogQueryService:
    def __init__(self, manager: PersistenceManager):
        self._manager = manager

    def get_all_descending(self) -> list[dict[str, Any]]:
        """Every entry, newest first (UI display)."""
        return self._query(SortOrder.DESC)

    def get_all_ascending(self) -> list[dict[str, Any]]:
        """Every entry, oldest first (export)."""
        return self._query(SortOrder.ASC)

    load_logs = get_all_descending

    async def clear_all(self) -> OperationResult:
        """Delete every entry and persist the empty store right away.

        A clear that only lived in memory would come back after a crash, so
        this is the one mutation that flushes synchronously.
        """
        store = self._manager.store
        if store is None or not self._manager.accepting_writes:
            return OperationResult.fail(NOT_READY)

        try:
            store.clear()
        except MutationError as exc:
            logger.error("Error clearing log: %s", exc)
            return OperationResult.fail(str(exc))

        try:
            await self._manager.flush_persistent()
        except FlushError as exc:
            logger.error("Log cleared in memory but not persisted: %s", exc)
            return OperationResult.fail(f"{CLEARED_NOT_PERSISTED} {exc}")

        logger.info("Log cleared and persistent file updated")
        return OperationResult.ok()

    clear_logs = clear_all

    def _query(self, order: SortOrder) -> list[dict[str, Any]]:
        store = self._manager.store
        if store is None:
            return []
        try:
            return [entry.to_dict() for entry in store.query_all(order)]
        except (SQLAlchemyError, RuntimeError) as exc:
            logger.error("Error reading logs: %s", exc)
            return []
