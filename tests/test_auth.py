from datetime import datetime, timedelta, UTC
import pytest
from src.services.auth import InMemorySessionResolver


@pytest.fixture
def resolver():
    r = InMemorySessionResolver()
    r.add_session("live", "user-1", datetime.now(UTC) + timedelta(days=1))
    r.add_session("stale", "user-1", datetime.now(UTC) - timedelta(seconds=1))
    r.grant("user-1", "acme")
    return r


def test_valid_session_and_tenant(resolver):
    auth = resolver.resolve("live", "acme")
    assert auth.tenant_id == "acme"
    assert auth.user_id == "user-1"


@pytest.mark.parametrize(
    "token,tenant",
    [
        (None, "acme"),       # No cookie
        ("live", None),       # No tenant
        ("unknown", "acme"),  # Unknown session
        ("stale", "acme"),    # Expired session
        ("live", "globex"),   # No access to tenant
    ],
)
def test_unauthorised(resolver, token, tenant):
    assert resolver.resolve(token, tenant) is None
