"""Boundary surface handed to the UI, probe and export collaborators.

Bundles intake, queries, export and the backup status channel around one
persistence manager.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from netlog.bus.status_channel import BackupStatusChannel, StatusListener
from netlog.observability.metrics import MetricsCollector
from netlog.persistence.manager import PersistenceManager
from netlog.service.export import export_log_csv
from netlog.service.intake import EventIntake
from netlog.service.query import LogQueryService
from netlog.service.results import OperationResult


class NetworkLogApi:
    def __init__(
        self,
        manager: PersistenceManager,
        status_channel: Optional[BackupStatusChannel] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._manager = manager
        self._status_channel = status_channel or BackupStatusChannel()
        self.intake = EventIntake(manager, metrics)
        self.query = LogQueryService(manager)

    def record_status_change(self, status: str, timestamp: str) -> OperationResult:
        return self.intake.record_status_change(status, timestamp)

    def load_logs(self) -> list[dict[str, Any]]:
        return self.query.get_all_descending()

    def get_all_ascending(self) -> list[dict[str, Any]]:
        return self.query.get_all_ascending()

    async def clear_logs(self) -> OperationResult:
        return await self.query.clear_all()

    async def export_log_csv(self, path: str) -> OperationResult:
        return await export_log_csv(self.query, path)

    def on_backup_status(self, listener: StatusListener) -> Callable[[], None]:
        return self._status_channel.subscribe(listener)
