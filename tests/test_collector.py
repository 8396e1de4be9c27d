"""Tests for the line collector."""

import asyncio

import pytest

from netlog.collector.line_collector import LineCollector, parse_line
from netlog.service.intake import EventIntake


class TestParseLine:
    def test_blank(self):
        assert parse_line("   \n") is None

    def test_plain(self):
        assert parse_line("DOWN 2024-01-01T00:00:00Z\n") == ("DOWN", "2024-01-01T00:00:00Z")

    def test_json(self):
        line = '{"status": "UP", "timestamp": "2024-01-01T00:05:00Z"}'
        assert parse_line(line) == ("UP", "2024-01-01T00:05:00Z")

    def test_missing_timestamp_is_stamped_now(self):
        status, timestamp = parse_line("UP")
        assert status == "UP"
        assert timestamp.endswith("Z")
        assert "T" in timestamp

    def test_json_missing_status(self):
        with pytest.raises(ValueError, match="status"):
            parse_line('{"timestamp": "x"}')

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_line("{not json")

    def test_json_array_rejected(self):
        with pytest.raises(ValueError, match="object"):
            parse_line('["UP"]')

    def test_json_string_rejected(self):
        with pytest.raises(ValueError, match="object"):
            parse_line('"UP"')

    @pytest.mark.asyncio
    async def test_array_line_not_recorded(self, make_manager):
        mgr = make_manager()
        store = await mgr.load()

        reader = asyncio.StreamReader()
        reader.feed_data(b'["UP"]\nDOWN t1\n')
        reader.feed_eof()

        collector = LineCollector(EventIntake(mgr), reader)
        await asyncio.wait_for(collector.start(), timeout=5)

        assert collector.lines_rejected == 1
        assert [(e.status, e.timestamp) for e in store.query_all()] == [("DOWN", "t1")]
        await mgr.shutdown()


class TestLineCollector:
    @pytest.mark.asyncio
    async def test_records_until_eof(self, make_manager):
        mgr = make_manager()
        store = await mgr.load()

        reader = asyncio.StreamReader()
        reader.feed_data(
            b"DOWN 2024-01-01T00:00:00Z\n"
            b"\n"
            b"{not json\n"
            b'{"status": "UP", "timestamp": "2024-01-01T00:05:00Z"}\n'
        )
        reader.feed_eof()

        collector = LineCollector(EventIntake(mgr), reader)
        await asyncio.wait_for(collector.start(), timeout=5)

        assert collector.events_collected == 2
        assert collector.lines_rejected == 1
        assert [(e.id, e.status) for e in store.query_all()] == [(1, "DOWN"), (2, "UP")]
        await mgr.shutdown()

    @pytest.mark.asyncio
    async def test_rejects_when_store_not_ready(self, make_manager):
        mgr = make_manager()
        reader = asyncio.StreamReader()
        reader.feed_data(b"UP 2024-01-01T00:00:00Z\n")
        reader.feed_eof()

        collector = LineCollector(EventIntake(mgr), reader)
        await collector.start()
        assert collector.events_collected == 0
        assert collector.lines_rejected == 1

    @pytest.mark.asyncio
    async def test_stop_ends_loop(self, make_manager):
        mgr = make_manager()
        await mgr.load()
        reader = asyncio.StreamReader()
        collector = LineCollector(EventIntake(mgr), reader)

        task = asyncio.create_task(collector.start())
        await asyncio.sleep(0.01)
        await collector.stop()
        reader.feed_data(b"UP t1\n")
        await asyncio.wait_for(task, timeout=5)

        # the line that woke the loop is still handled before it exits
        assert collector.events_collected == 1
        await mgr.shutdown()
