"""
Tests for per-tenant sliding-window rate limits.
"""

import asyncio
from datetime import datetime, timedelta, UTC
import pytest
from src.core.errors import human_wait
from src.core.tasks import drain_background_tasks
from src.services.rate_limit import RateLimiter, RateLimitPolicy, receipt_scan_limits
from src.services.storage import UsageTracker

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)


class RecordingAlerts:
    def __init__(self):
        self.calls = []

    async def __call__(self, tenant_id, action_type, limit_hit, current, limit):
        self.calls.append((tenant_id, action_type, limit_hit, current, limit))
        return {"status": "sent"}


@pytest.fixture
def tracker():
    return UsageTracker()


@pytest.fixture
def alerts():
    return RecordingAlerts()


@pytest.fixture
def limiter(tracker, alerts):
    return RateLimiter(tracker, alert=alerts)


def record_n(tracker, n, at, tenant="acme", action="receipt_scan"):
    for _ in range(n):
        tracker.record(tenant, action, at=at)


def test_allowed_when_under_all_limits(limiter, tracker):
    policy = RateLimitPolicy("receipt_scan", per_minute=10, per_hour=60)
    record_n(tracker, 9, NOW - timedelta(seconds=5))

    result = limiter.check("acme", policy, now=NOW)

    assert result.allowed is True
    assert result.limit_hit is None


def test_minute_window_hit(limiter, tracker):
    policy = RateLimitPolicy("receipt_scan", per_minute=10, per_hour=60)
    record_n(tracker, 10, NOW - timedelta(seconds=30))

    result = limiter.check("acme", policy, now=NOW)

    assert result.allowed is False
    assert result.limit_hit == "per_minute"
    assert result.current == 10
    assert result.limit == 10
    assert result.retry_after_seconds == 60


def test_events_outside_window_do_not_count(limiter, tracker):
    policy = RateLimitPolicy("receipt_scan", per_minute=10)
    record_n(tracker, 10, NOW - timedelta(seconds=61))

    assert limiter.check("acme", policy, now=NOW).allowed is True


def test_smallest_window_reported_first(limiter, tracker):
    policy = RateLimitPolicy("receipt_scan", per_minute=5, per_day=5)
    record_n(tracker, 5, NOW - timedelta(seconds=10))

    assert limiter.check("acme", policy, now=NOW).limit_hit == "per_minute"


def test_month_window(limiter, tracker):
    policy = receipt_scan_limits()
    # Spread 200 scans over the last 20 days: no smaller window is full
    for day in range(20):
        record_n(tracker, 10, NOW - timedelta(days=day, hours=2))

    result = limiter.check("acme", policy, now=NOW)

    assert result.allowed is False
    assert result.limit_hit == "per_month"
    assert result.retry_after_seconds == 2592000


def test_unset_windows_are_skipped(limiter, tracker):
    policy = RateLimitPolicy("receipt_scan", per_minute=None, per_hour=3)
    record_n(tracker, 3, NOW - timedelta(minutes=30))

    assert limiter.check("acme", policy, now=NOW).limit_hit == "per_hour"


def test_limits_are_per_tenant_and_action(limiter, tracker):
    policy = RateLimitPolicy("receipt_scan", per_minute=1)
    record_n(tracker, 1, NOW, tenant="globex")
    record_n(tracker, 1, NOW, action="csv_export")

    assert limiter.check("acme", policy, now=NOW).allowed is True


def test_record_usage_counts(limiter, tracker):
    limiter.record_usage("acme", "receipt_scan")
    limiter.record_usage("acme", "receipt_scan")

    events = tracker.list_for_tenant("acme")
    assert len(events) == 2
    assert all(e["action_type"] == "receipt_scan" for e in events)


def test_alert_fires_for_alerting_window(limiter, tracker, alerts):
    policy = RateLimitPolicy("receipt_scan", per_day=3, alert_on=frozenset({"per_day"}))
    record_n(tracker, 3, NOW - timedelta(hours=1))

    async def scenario():
        result = limiter.check("acme", policy, now=NOW)
        await drain_background_tasks()
        return result

    result = asyncio.run(scenario())

    assert result.limit_hit == "per_day"
    assert alerts.calls == [("acme", "receipt_scan", "per_day", 3, 3)]


def test_no_alert_for_non_alerting_window(limiter, tracker, alerts):
    policy = RateLimitPolicy("receipt_scan", per_minute=1, per_day=100, alert_on=frozenset({"per_day"}))
    record_n(tracker, 1, NOW)

    async def scenario():
        limiter.check("acme", policy, now=NOW)
        await drain_background_tasks()

    asyncio.run(scenario())
    assert alerts.calls == []


def test_receipt_scan_limits_defaults():
    policy = receipt_scan_limits()
    assert policy.action_type == "receipt_scan"
    assert (policy.per_minute, policy.per_hour, policy.per_day, policy.per_month) == (10, 60, 100, 200)
    assert policy.alert_on == frozenset({"per_day", "per_month"})


@pytest.mark.parametrize(
    "seconds,expected",
    [(60, "1 minute"), (120, "2 minutes"), (90, "2 minutes"), (3600, "60 minutes"), (None, "1 minute")],
)
def test_human_wait(seconds, expected):
    assert human_wait(seconds) == expected
