"""Tests for intake, queries, CSV export and the backup status channel."""

import asyncio
import time
from unittest.mock import patch

import pytest

from netlog.bus.status_channel import BackupStatusChannel
from netlog.observability.metrics import MetricsCollector
from netlog.persistence import manager as manager_mod
from netlog.persistence.manager import ManagerState
from netlog.service.api import NetworkLogApi
from netlog.service.export import format_csv
from netlog.service.results import CLEARED_NOT_PERSISTED, NOT_READY
from netlog.store.codec import load_snapshot_file

EXPECTED_CSV = (
    "ID,Timestamp_ISO,Status\n"
    '1,"2024-01-01T00:00:00Z",DOWN\n'
    '2,"2024-01-01T00:05:00Z",UP'
)


class TestNetworkLogApi:
    @pytest.mark.asyncio
    async def test_scenario_descending_and_csv(self, make_manager, tmp_path):
        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr)

        assert api.record_status_change("DOWN", "2024-01-01T00:00:00Z").success
        assert api.record_status_change("UP", "2024-01-01T00:05:00Z").success

        assert api.load_logs() == [
            {"id": 2, "timestamp": "2024-01-01T00:05:00Z", "status": "UP"},
            {"id": 1, "timestamp": "2024-01-01T00:00:00Z", "status": "DOWN"},
        ]
        assert format_csv(api.get_all_ascending()) == EXPECTED_CSV

        out = tmp_path / "export.csv"
        result = await api.export_log_csv(str(out))
        assert result.success
        assert out.read_text(encoding="utf-8") == EXPECTED_CSV
        await mgr.shutdown()

    @pytest.mark.asyncio
    async def test_record_returns_id(self, make_manager):
        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr)
        result = api.record_status_change("UP", "t1")
        assert result.to_dict() == {"success": True, "id": 1}
        await mgr.shutdown()

    def test_not_ready(self, make_manager):
        api = NetworkLogApi(make_manager())
        result = api.record_status_change("UP", "t1")
        assert result.success is False
        assert result.error == NOT_READY
        assert api.load_logs() == []

    @pytest.mark.asyncio
    async def test_clear_when_not_ready(self, make_manager):
        api = NetworkLogApi(make_manager())
        result = await api.clear_logs()
        assert result.to_dict() == {"success": False, "error": NOT_READY}

    @pytest.mark.asyncio
    async def test_record_after_shutdown_fails(self, make_manager):
        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr)
        await mgr.shutdown()
        assert api.record_status_change("UP", "t1").error == NOT_READY

    @pytest.mark.asyncio
    async def test_clear_persists_immediately(self, make_manager):
        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr)
        api.record_status_change("DOWN", "t1")
        api.record_status_change("UP", "t2")
        await mgr.flush_persistent()

        result = await api.clear_logs()
        assert result.success
        assert api.load_logs() == []

        # what a crash right now would reload
        reloaded = load_snapshot_file(mgr.db_path)
        assert reloaded.count() == 0
        assert reloaded.last_id == 0
        reloaded.database.disconnect()

        assert api.record_status_change("UP", "t3").id == 1
        await mgr.shutdown()

    @pytest.mark.asyncio
    async def test_writes_rejected_during_final_flush(self, make_manager):
        real_write = manager_mod._write_atomic
        writing = asyncio.Event()
        loop = asyncio.get_running_loop()

        def slow_write(path, data):
            loop.call_soon_threadsafe(writing.set)
            time.sleep(0.2)
            real_write(path, data)

        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr)
        api.record_status_change("UP", "t1")

        with patch.object(manager_mod, "_write_atomic", slow_write):
            closing = asyncio.create_task(mgr.shutdown())
            await asyncio.wait_for(writing.wait(), timeout=5)
            assert mgr.state == ManagerState.CLOSING

            result = api.record_status_change("DOWN", "t2")
            assert result.to_dict() == {"success": False, "error": NOT_READY}
            cleared = await api.clear_logs()
            assert cleared.error == NOT_READY

            assert await closing is True

        reloaded = load_snapshot_file(mgr.db_path)
        assert [(e.id, e.status) for e in reloaded.query_all()] == [(1, "UP")]
        reloaded.database.disconnect()

    @pytest.mark.asyncio
    async def test_clear_reports_unsaved_flush(self, make_manager):
        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr)
        api.record_status_change("UP", "t1")

        with patch.object(manager_mod, "_write_atomic", side_effect=OSError("disk full")):
            result = await api.clear_logs()

        assert result.success is False
        assert result.error.startswith(CLEARED_NOT_PERSISTED)
        assert "disk full" in result.error
        assert api.load_logs() == []
        await mgr.shutdown()

    @pytest.mark.asyncio
    async def test_insert_metrics(self, make_manager):
        metrics = MetricsCollector()
        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr, metrics=metrics)
        api.record_status_change("UP", "t1")
        assert metrics.registry.get_sample_value("netlog_inserts_total", {"outcome": "ok"}) == 1.0
        await mgr.shutdown()

    @pytest.mark.asyncio
    async def test_export_empty_log(self, make_manager, tmp_path):
        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr)
        out = tmp_path / "empty.csv"
        result = await api.export_log_csv(str(out))
        assert result.success is False
        assert result.message == "No logs to export."
        assert not out.exists()
        await mgr.shutdown()

    @pytest.mark.asyncio
    async def test_export_to_missing_directory_fails(self, make_manager, tmp_path):
        mgr = make_manager()
        await mgr.load()
        api = NetworkLogApi(mgr)
        api.record_status_change("UP", "t1")
        result = await api.export_log_csv(str(tmp_path / "nope" / "out.csv"))
        assert result.success is False
        assert result.message.startswith("CSV Export failed")
        await mgr.shutdown()

    @pytest.mark.asyncio
    async def test_backup_status_reaches_listener(self, make_manager):
        channel = BackupStatusChannel()
        mgr = make_manager(status_channel=channel)
        await mgr.load()
        api = NetworkLogApi(mgr, channel)

        received = []
        unsubscribe = api.on_backup_status(received.append)
        await mgr.flush_and_archive()
        unsubscribe()
        await mgr.flush_and_archive()

        assert len(received) == 1
        assert channel.published_count == 2
        await mgr.shutdown()


class TestFormatCsv:
    def test_header_only(self):
        assert format_csv([]) == "ID,Timestamp_ISO,Status"

    def test_embedded_quote_is_doubled(self):
        csv = format_csv([{"id": 1, "timestamp": 'a"b', "status": "UP"}])
        assert csv.splitlines()[1] == '1,"a""b",UP'


class TestBackupStatusChannel:
    def test_no_listener_drops_message(self):
        channel = BackupStatusChannel()
        channel.publish("hello")
        assert channel.latest == "hello"

    def test_failing_listener_is_isolated(self):
        channel = BackupStatusChannel()
        received = []

        def broken(_message):
            raise RuntimeError("ui gone")

        channel.subscribe(broken)
        channel.subscribe(received.append)
        channel.publish("Last Auto Backup: 10:00:00")
        assert received == ["Last Auto Backup: 10:00:00"]

    def test_unsubscribe_twice_is_harmless(self):
        channel = BackupStatusChannel()
        unsubscribe = channel.subscribe(lambda _m: None)
        unsubscribe()
        unsubscribe()
        channel.publish("x")
        assert channel.published_count == 1

