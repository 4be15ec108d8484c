"""
Abstract base class for usage tracking implementations.

Usage events back the per-tenant rate limits. Every implementation must be
safe under concurrent record() calls for the same tenant.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class UsageTrackerBase(ABC):
    """
    Abstract base class for rate-limit usage tracking.

    Implementations can use:
    - In-memory storage (for testing/demo)
    - SQLite (for single-instance deployments)
    - PostgreSQL (for multi-instance deployments)
    """

    @abstractmethod
    def record(self, tenant_id: str, action_type: str, at: datetime | None = None) -> str:
        """
        Record one usage event.

        Args:
            tenant_id: Tenant that consumed the action
            action_type: Action name (e.g. "receipt_scan")
            at: Event time (default: now, UTC)

        Returns:
            Usage event ID
        """
        pass

    @abstractmethod
    def count_since(self, tenant_id: str, action_type: str, since: datetime) -> int:
        """
        Count usage events at or after a point in time.

        Args:
            tenant_id: Tenant to count for
            action_type: Action name
            since: Inclusive lower bound (timezone-aware UTC)

        Returns:
            Number of events in the window
        """
        pass

    @abstractmethod
    def list_for_tenant(self, tenant_id: str) -> list:
        """
        List all usage events for a tenant, newest first.

        Returns:
            List of dictionaries with keys id, tenant_id, action_type, created_at
        """
        pass
