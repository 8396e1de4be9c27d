"""CSV projection of the log, oldest first.

    ID,Timestamp_ISO,Status
    1,"2024-01-01T00:00:00Z",DOWN
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping

from netlog.service.query import LogQueryService
from netlog.service.results import OperationResult

logger = logging.getLogger(__name__)

CSV_HEADERS = ("ID", "Timestamp_ISO", "Status")


def format_csv(entries: Iterable[Mapping[str, Any]]) -> str:
    """Render *entries* as CSV.  The timestamp column is always quoted."""
    rows = [",".join(CSV_HEADERS)]
    for entry in entries:
        timestamp = str(entry["timestamp"]).replace('"', '""')
        rows.append(f'{entry["id"]},"{timestamp}",{entry["status"]}')
    return "\n".join(rows)


def _write_text(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


async def export_log_csv(query: LogQueryService, path: str) -> OperationResult:
    """Write the ascending log as CSV to *path*."""
    entries = query.get_all_ascending()
    if not entries:
        return OperationResult.fail("No logs to export.", message="No logs to export.")

    try:
        await asyncio.to_thread(_write_text, path, format_csv(entries))
    except OSError as exc:
        logger.error("CSV export to %s failed: %s", path, exc)
        return OperationResult.fail(str(exc), message=f"CSV Export failed: {exc}")

    logger.info("Exported %d entries to %s", len(entries), path)
    return OperationResult.ok(message=f"CSV exported successfully to: {path}")
