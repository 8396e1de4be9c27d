"""Backup status channel.

One-directional, fire-and-forget notifications from the persistence layer to
whoever displays backup state.  No acknowledgement, no backpressure: with no
listener attached a message is simply dropped (``latest`` still records it).
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

StatusListener = Callable[[str], None]


class BackupStatusChannel:
    """Broadcasts human-readable backup status strings to listeners."""

    def __init__(self) -> None:
        self._listeners: list[StatusListener] = []
        self._latest: Optional[str] = None
        self._published = 0

    @property
    def latest(self) -> Optional[str]:
        """Most recent message published, delivered or not."""
        return self._latest

    @property
    def published_count(self) -> int:
        return self._published

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Attach *listener*.  Returns a callable that detaches it again."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, message: str) -> None:
        """Deliver *message* to every current listener.

        A listener that raises is logged and skipped; the publisher never sees
        the error.
        """
        self._latest = message
        self._published += 1
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as exc:
                logger.warning("Backup status listener %r failed: %s", listener, exc)
