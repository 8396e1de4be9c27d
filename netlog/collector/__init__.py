"""netlog -- probe result collectors."""

from netlog.collector.line_collector import LineCollector, parse_line, utc_now_iso

__all__ = ["LineCollector", "parse_line", "utc_now_iso"]
