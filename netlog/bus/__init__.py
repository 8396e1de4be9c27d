"""netlog -- in-process notification channels."""

from netlog.bus.status_channel import BackupStatusChannel, StatusListener

__all__ = ["BackupStatusChannel", "StatusListener"]
