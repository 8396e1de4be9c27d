"""Prometheus metrics for the persistence subsystem.

What we track:
- flush / archive outcomes and latency
- inserts accepted or rejected
- current number of rows in the store
- wall-clock time of the last successful canonical flush
"""

import logging
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

logger = logging.getLogger(__name__)

TARGET_PERSISTENT = "persistent"
TARGET_ARCHIVE = "archive"


class MetricsCollector:
    """Centralized Prometheus metrics collector.

    Each collector owns its registry so several instances (e.g. in tests)
    never clash on metric names.
    """

    def __init__(self, port: int = 8000, registry: Optional[CollectorRegistry] = None):
        self._port = port
        self._started = False
        self.registry = registry or CollectorRegistry()

        # === Persistence ===
        self.flush_total = Counter(
            'netlog_flush_total',
            'Snapshot writes by target and outcome',
            ['target', 'outcome'],
            registry=self.registry,
        )

        self.flush_duration = Histogram(
            'netlog_flush_duration_seconds',
            'Time to serialize and write a snapshot',
            ['target'],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=self.registry,
        )

        self.last_flush_timestamp = Gauge(
            'netlog_last_flush_timestamp_seconds',
            'Unix time of the last successful canonical flush',
            registry=self.registry,
        )

        # === Store ===
        self.log_entries = Gauge(
            'netlog_log_entries',
            'Rows currently held in the log store',
            registry=self.registry,
        )

        self.inserts_total = Counter(
            'netlog_inserts_total',
            'Status changes received by outcome',
            ['outcome'],
            registry=self.registry,
        )

        # === Build Info ===
        self.build_info = Info(
            'netlog_build',
            'Build information',
            registry=self.registry,
        )

    def record_flush(self, target: str, ok: bool, duration: float = 0.0):
        self.flush_total.labels(target=target, outcome="ok" if ok else "error").inc()
        if ok:
            self.flush_duration.labels(target=target).observe(duration)

    def record_insert(self, ok: bool):
        self.inserts_total.labels(outcome="ok" if ok else "error").inc()

    def start_server(self):
        """Start Prometheus HTTP server."""
        if self._started:
            return
        try:
            start_http_server(self._port, registry=self.registry)
            self._started = True
            logger.info("Prometheus metrics server started on port %d", self._port)
        except OSError as e:
            logger.error("Failed to start metrics server: %s", e)

    def set_build_info(self, version: str, data_dir: str):
        """Set build information."""
        self.build_info.info({
            'version': version,
            'data_dir': data_dir,
        })


# Singleton
_metrics: Optional[MetricsCollector] = None

def get_metrics(port: int = 8000) -> MetricsCollector:
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector(port)
    return _metrics
