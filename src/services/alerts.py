
import copy
from datetime import datetime, UTC
import httpx
from loguru import logger
from ..core.config import settings

# Operator notification when a tenant hits a daily/monthly scan limit.
# Posted as an Adaptive Card to a Teams Incoming Webhook.

ALERT_CARD_TEMPLATE = {
    "type": "message",
    "attachments": [{
        "contentType": "application/vnd.microsoft.card.adaptive",
        "content": {
            "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
            "type": "AdaptiveCard",
            "version": "1.4",
            "body": [
                {"type": "TextBlock", "weight": "Bolder", "size": "Medium", "color": "Attention",
                 "text": "Rate Limit Alert"},
                {"type": "FactSet", "facts": []},
                {"type": "TextBlock", "wrap": True, "isSubtle": True,
                 "text": "If this is legitimate usage, raise the limit in the service configuration."}
            ]
        }
    }]
}


def window_label(limit_hit: str) -> str:
    """'per_day' -> 'day'"""
    return limit_hit.removeprefix("per_").replace("_", " ")


async def post_rate_limit_alert(
    tenant_id: str,
    action_type: str,
    limit_hit: str,
    current: int,
    limit: int,
) -> dict:
    if not settings.teams_webhook_url:
        return {"status": "skipped", "reason": "TEAMS_WEBHOOK_URL not set"}

    label = window_label(limit_hit)
    card = copy.deepcopy(ALERT_CARD_TEMPLATE)
    card["attachments"][0]["content"]["body"][0]["text"] = f"Rate Limit Alert: {action_type} ({label} limit reached)"
    facts = card["attachments"][0]["content"]["body"][1]["facts"]
    facts.extend([
        {"title": "Tenant", "value": tenant_id},
        {"title": "Action", "value": action_type},
        {"title": "Window", "value": label},
        {"title": "Usage", "value": f"{current} of {limit} per {label}"},
        {"title": "Time", "value": datetime.now(UTC).isoformat()},
    ])

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.post(settings.teams_webhook_url, json=card)
    except httpx.HTTPError as e:
        # Rate limiting still applies even if the notification fails
        logger.warning("Failed to send rate limit alert: {}", e, tenant_id=tenant_id, limit_hit=limit_hit)
        return {"status": "failed", "reason": str(e)}

    logger.info("Rate limit alert sent", tenant_id=tenant_id, limit_hit=limit_hit, http_status=r.status_code)
    return {"status": "sent", "http_status": r.status_code}
