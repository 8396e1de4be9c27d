"""netlog -- Observability package.

Prometheus metrics for the persistence subsystem.
"""

from netlog.observability.metrics import MetricsCollector, get_metrics

__all__: list[str] = [
    "MetricsCollector",
    "get_metrics",
]
