"""Event Intake -- commits one status observation into the log store.

Deliberately does not persist: durability comes from the scheduled and
shutdown flushes of the persistence manager.
"""

from __future__ import annotations

import logging
from typing import Optional

from netlog.errors import MutationError
from netlog.observability.metrics import MetricsCollector
from netlog.persistence.manager import PersistenceManager
from netlog.service.results import NOT_READY, OperationResult

logger = logging.getLogger(__name__)


class EventIntake:
    def __init__(self, manager: PersistenceManager, metrics: Optional[MetricsCollector] = None):
        self._manager = manager
        self._metrics = metrics

    def record_status_change(self, status: str, timestamp: str) -> OperationResult:
        """Insert ``(status, timestamp)`` and report the outcome to the caller."""
        store = self._manager.store
        if store is None or not self._manager.accepting_writes:
            return OperationResult.fail(NOT_READY)

        try:
            new_id = store.insert(status, timestamp)
        except MutationError as exc:
            logger.error("Insert failed: %s", exc)
            if self._metrics is not None:
                self._metrics.record_insert(ok=False)
            return OperationResult.fail(str(exc))

        if self._metrics is not None:
            self._metrics.record_insert(ok=True)
        return OperationResult.ok(id=new_id)
