"""netlog -- boundary services (intake, queries, export)."""

from netlog.service.api import NetworkLogApi
from netlog.service.export import CSV_HEADERS, export_log_csv, format_csv
from netlog.service.intake import EventIntake
from netlog.service.query import LogQueryService
from netlog.service.results import OperationResult

__all__ = [
    "CSV_HEADERS",
    "EventIntake",
    "LogQueryService",
    "NetworkLogApi",
    "OperationResult",
    "export_log_csv",
    "format_csv",
]
