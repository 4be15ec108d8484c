"""
Per-tenant rate limits for metered actions (receipt scans).

Limits are sliding windows over recorded usage events. Usage is recorded by
the caller AFTER a successful operation, so failed scans never consume quota.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from typing import Literal
from loguru import logger
from .alerts import post_rate_limit_alert
from .storage import UsageTrackerBase
from ..core.config import settings
from ..core.tasks import fire_and_forget

WindowName = Literal["per_minute", "per_hour", "per_day", "per_month"]

# Checked smallest to largest so the cheapest refusal wins
WINDOWS: list[tuple[WindowName, int]] = [
    ("per_minute", 60),
    ("per_hour", 3600),
    ("per_day", 86400),
    ("per_month", 2592000),
]


@dataclass(frozen=True)
class RateLimitPolicy:
    action_type: str
    per_minute: int | None = None
    per_hour: int | None = None
    per_day: int | None = None
    per_month: int | None = None
    alert_on: frozenset = field(default_factory=frozenset)  # Window names that notify operators

    def limit_for(self, window: WindowName) -> int | None:
        return getattr(self, window)


@dataclass
class RateLimitResult:
    allowed: bool
    limit_hit: WindowName | None = None
    current: int | None = None
    limit: int | None = None
    retry_after_seconds: int | None = None


def receipt_scan_limits() -> RateLimitPolicy:
    return RateLimitPolicy(
        action_type="receipt_scan",
        per_minute=settings.scan_limit_per_minute,
        per_hour=settings.scan_limit_per_hour,
        per_day=settings.scan_limit_per_day,
        per_month=settings.scan_limit_per_month,
        alert_on=frozenset({"per_day", "per_month"}),
    )


class RateLimiter:
    def __init__(self, tracker: UsageTrackerBase, alert=post_rate_limit_alert):
        self.tracker = tracker
        self.alert = alert

    def check(self, tenant_id: str, policy: RateLimitPolicy, now: datetime | None = None) -> RateLimitResult:
        """Return the first exceeded window, or allowed=True"""
        now = now or datetime.now(UTC)

        for window, seconds in WINDOWS:
            limit = policy.limit_for(window)
            if limit is None:
                continue

            current = self.tracker.count_since(tenant_id, policy.action_type, now - timedelta(seconds=seconds))
            if current < limit:
                continue

            logger.warning(
                "Rate limit hit",
                tenant_id=tenant_id,
                action_type=policy.action_type,
                window=window,
                current=current,
                limit=limit,
            )
            if window in policy.alert_on:
                fire_and_forget(
                    self.alert(tenant_id, policy.action_type, window, current, limit),
                    description=f"rate limit alert {tenant_id}/{window}",
                )

            return RateLimitResult(
                allowed=False,
                limit_hit=window,
                current=current,
                limit=limit,
                retry_after_seconds=seconds,
            )

        return RateLimitResult(allowed=True)

    def record_usage(self, tenant_id: str, action_type: str) -> None:
        """Record a single usage event. Call this AFTER a successful operation."""
        self.tracker.record(tenant_id, action_type)
        logger.debug("Recorded usage", tenant_id=tenant_id, action_type=action_type)
