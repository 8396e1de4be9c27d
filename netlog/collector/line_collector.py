"""Line collector - feeds probe results from a text stream into intake.

One event per line, either a JSON object::

    {"status": "DOWN", "timestamp": "2024-01-01T00:00:00Z"}

or whitespace separated::

    DOWN 2024-01-01T00:00:00Z

A line without a timestamp is stamped with the current UTC time.  Blank
lines are ignored; malformed lines are logged and skipped.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from netlog.service.intake import EventIntake

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_line(line: str) -> Optional[tuple[str, str]]:
    """Parse one input line into ``(status, timestamp)``.

    Returns ``None`` for blank lines.  Raises ``ValueError`` for lines that
    carry no usable status.
    """
    text = line.strip()
    if not text:
        return None

    if text[0] in "{[\"":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError("JSON line must be an object")
        status = payload.get("status")
        if not isinstance(status, str) or not status:
            raise ValueError("missing 'status'")
        timestamp = payload.get("timestamp") or utc_now_iso()
        return status, str(timestamp)

    parts = text.split(None, 1)
    status = parts[0]
    timestamp = parts[1].strip() if len(parts) > 1 else utc_now_iso()
    return status, timestamp


class LineCollector:
    """Reads probe results line by line and records each one.

    Single writer: lines are handled strictly in arrival order.
    """

    def __init__(self, intake: EventIntake, reader: asyncio.StreamReader):
        self._intake = intake
        self._reader = reader
        self._running = False

        # Metrics
        self._events_collected = 0
        self._lines_rejected = 0

    @property
    def events_collected(self) -> int:
        return self._events_collected

    @property
    def lines_rejected(self) -> int:
        return self._lines_rejected

    async def start(self):
        """Consume the stream until EOF or ``stop()``."""
        self._running = True
        logger.info("Line collector started")
        while self._running:
            raw = await self._reader.readline()
            if not raw:
                logger.info("Line collector reached end of input")
                break
            self._process_line(raw.decode("utf-8", errors="replace"))
        self._running = False

    async def stop(self):
        self._running = False
        logger.info(
            "Line collector stopped (%d recorded, %d rejected)",
            self._events_collected, self._lines_rejected,
        )

    def _process_line(self, line: str):
        try:
            parsed = parse_line(line)
        except ValueError as exc:
            self._lines_rejected += 1
            logger.warning("Skipping malformed line %r: %s", line.strip(), exc)
            return
        if parsed is None:
            return

        status, timestamp = parsed
        result = self._intake.record_status_change(status, timestamp)
        if result.success:
            self._events_collected += 1
        else:
            self._lines_rejected += 1
            logger.error("Status change %s at %s not recorded: %s", status, timestamp, result.error)
