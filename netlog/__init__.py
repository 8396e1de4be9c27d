"""netlog -- network connectivity logger with persistent, archived storage."""

__version__ = "1.0.0"
