from ...core.config import settings
from .usage import UsageTracker
from .usage_sqlite import SQLiteUsageTracker
from .usage_tracker_base import UsageTrackerBase


def create_usage_tracker() -> UsageTrackerBase:
    if settings.usage_db_path:
        return SQLiteUsageTracker(settings.usage_db_path)
    return UsageTracker()


# Global instance (override via dependency injection in tests)
usage_tracker = create_usage_tracker()
