from datetime import datetime, timezone
from threading import Lock


def _now():
    return datetime.now(timezone.utc)


class SyncHeartbeat:
    """Process-wide revision counter for the Open-AudIT sync.

    UI clients poll ``status()`` and drop every cached asset view when the
    revision moves. The counter says nothing about which tenant changed.
    """

    def __init__(self):
        self._lock = Lock()
        self._revision = 0
        self._last_sync_at = None

    @property
    def revision(self):
        with self._lock:
            return self._revision

    @property
    def last_sync_at(self):
        with self._lock:
            return self._last_sync_at

    def mark_changed(self):
        with self._lock:
            self._revision += 1
            self._last_sync_at = _now()
            return self._revision

    def mark_tick(self):
        with self._lock:
            self._last_sync_at = _now()
            return self._revision

    def status(self):
        with self._lock:
            return {
                "revision": self._revision,
                "last_sync_at": self._last_sync_at.isoformat() if self._last_sync_at else None,
            }
