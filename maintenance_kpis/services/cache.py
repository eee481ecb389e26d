"""
In-memory snapshot cache for provider data.

Both providers are slow and rate limited, so the raw records are kept for a
fixed TTL and shared by every query in that window.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from maintenance_kpis.services.providers import RecordSnapshot

logger = logging.getLogger(__name__)


class RecordCache:
    """
    Holds the most recent RecordSnapshot.

    Refreshes are serialised by a lock: callers arriving while a refresh is
    running wait for it and reuse its result. The snapshot is only replaced
    as a whole, and a failed refresh leaves the previous one in place.
    """

    def __init__(self, loader: Callable[[], RecordSnapshot], ttl_seconds: int = 300):
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._snapshot: Optional[RecordSnapshot] = None
        self._lock = threading.Lock()

    def _is_fresh(self, now: datetime) -> bool:
        if self._snapshot is None:
            return False
        age = (now - self._snapshot.fetched_at).total_seconds()
        return age <= self.ttl_seconds

    def get_or_refresh(self, now: Optional[datetime] = None) -> RecordSnapshot:
        """Return the cached snapshot, reloading it when missing or expired."""
        now = now or datetime.now()
        with self._lock:
            if self._is_fresh(now):
                return self._snapshot

            logger.info("Record cache expired or empty, fetching from providers")
            snapshot = self._loader()
            snapshot.fetched_at = now
            self._snapshot = snapshot
            return snapshot

    def invalidate(self):
        with self._lock:
            self._snapshot = None

    def status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Cache state for the health endpoint."""
        now = now or datetime.now()
        snapshot = self._snapshot
        if snapshot is None:
            return {'cached': False, 'ttl_seconds': self.ttl_seconds}
        return {
            'cached': True,
            'fresh': self._is_fresh(now),
            'age_seconds': round((now - snapshot.fetched_at).total_seconds(), 1),
            'ttl_seconds': self.ttl_seconds,
            'work_orders': len(snapshot.work_orders),
            'usage_rows': len(snapshot.usage),
        }
