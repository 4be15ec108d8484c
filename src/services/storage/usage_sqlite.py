"""
SQLite-based usage tracking for rate limits.

Provides persistent storage of usage events so limits survive restarts.
"""

import sqlite3
import uuid
from datetime import datetime, UTC
from .usage_tracker_base import UsageTrackerBase


class SQLiteUsageTracker(UsageTrackerBase):
    """
    SQLite-backed usage tracker.

    Features:
    - Persistent storage across application restarts
    - Indexed window counts per tenant and action
    - Thread-safe operations (via SQLite's built-in locking)
    """

    def __init__(self, db_path: str = "usage.db"):
        """
        Initialize tracker with database path.

        Args:
            db_path: Path to SQLite database file (default: usage.db)
        """
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Create usage table if it doesn't exist"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS rate_limit_usage (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                action_type TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        # Window counts filter on all three columns
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_usage_tenant_action_time
            ON rate_limit_usage(tenant_id, action_type, created_at)
        """)

        conn.commit()
        conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _to_db_time(value: datetime) -> str:
        # Normalised UTC ISO strings compare correctly as text
        return value.astimezone(UTC).isoformat(timespec="microseconds")

    def record(self, tenant_id: str, action_type: str, at: datetime | None = None) -> str:
        """
        Record one usage event.

        Returns:
            Usage event ID (UUID string)
        """
        event_id = str(uuid.uuid4())
        created_at = self._to_db_time(at or datetime.now(UTC))

        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            INSERT INTO rate_limit_usage (id, tenant_id, action_type, created_at)
            VALUES (?, ?, ?, ?)
        """, (event_id, tenant_id, action_type, created_at))

        conn.commit()
        conn.close()

        return event_id

    def count_since(self, tenant_id: str, action_type: str, since: datetime) -> int:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            SELECT COUNT(*) AS n
            FROM rate_limit_usage
            WHERE tenant_id = ? AND action_type = ? AND created_at >= ?
        """, (tenant_id, action_type, self._to_db_time(since)))

        row = cursor.fetchone()
        conn.close()

        return int(row["n"])

    def list_for_tenant(self, tenant_id: str) -> list:
        """
        List usage events for a tenant (newest first).

        Returns:
            List of usage dictionaries
        """
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            SELECT id, tenant_id, action_type, created_at
            FROM rate_limit_usage
            WHERE tenant_id = ?
            ORDER BY created_at DESC
        """, (tenant_id,))

        rows = cursor.fetchall()
        conn.close()

        return [
            {
                "id": row["id"],
                "tenant_id": row["tenant_id"],
                "action_type": row["action_type"],
                "created_at": datetime.fromisoformat(row["created_at"]),
            }
            for row in rows
        ]
