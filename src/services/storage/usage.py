"""
In-memory usage tracking (for demo and tests).
In production, set USAGE_DB_PATH to use SQLite.
"""
from datetime import datetime, UTC
from threading import Lock
import uuid
from .usage_tracker_base import UsageTrackerBase


class UsageTracker(UsageTrackerBase):
    def __init__(self):
        self._events: list[dict] = []
        self._lock = Lock()

    def record(self, tenant_id: str, action_type: str, at: datetime | None = None) -> str:
        """Append a usage event and return its ID"""
        event_id = str(uuid.uuid4())
        with self._lock:
            self._events.append({
                "id": event_id,
                "tenant_id": tenant_id,
                "action_type": action_type,
                "created_at": at or datetime.now(UTC),
            })
        return event_id

    def count_since(self, tenant_id: str, action_type: str, since: datetime) -> int:
        with self._lock:
            return sum(
                1 for e in self._events
                if e["tenant_id"] == tenant_id
                and e["action_type"] == action_type
                and e["created_at"] >= since
            )

    def list_for_tenant(self, tenant_id: str) -> list:
        with self._lock:
            events = [dict(e) for e in self._events if e["tenant_id"] == tenant_id]
        events.sort(key=lambda e: e["created_at"], reverse=True)
        return events

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
