"""Security and edge case tests: role checks on every write path, no secret leakage."""
import uuid
import pytest
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock, MagicMock

from app.main import app
from app.core.errors import RecordConflictError, translate_store_error
from app.core.security import create_access_token, decode_token, hash_password, verify_password
from app.db.session import get_session
from app.core.deps import get_current_user


# ─── Fixtures ─────────────────────────────────────────────────────────────────

class FakeUser:
    """Minimal user stub for dependency overrides."""

    def __init__(self, role: str = "ADMIN", email: str = "admin@example.com", name: str = "Admin User"):
        self.id = uuid.UUID("f96955d0-752f-4e0c-b1dc-d26d8dd1460e")
        self.email = email
        self.name = name
        self.role = role
        self.is_active = True
        self.deleted_at = None


def make_mock_session():
    """Return an AsyncMock session with a default empty-result execute."""
    mock_result = MagicMock()
    mock_result.scalar_one.return_value = 0
    mock_result.scalar_one_or_none.return_value = None
    mock_result.scalars.return_value.all.return_value = []

    mock_session = AsyncMock()
    mock_session.execute = AsyncMock(return_value=mock_result)
    mock_session.add = MagicMock()
    return mock_session


def make_override_get_current_user(role: str = "ADMIN"):
    async def _override():
        return FakeUser(role=role)
    return _override


def make_session_override(mock_session):
    async def _override():
        yield mock_session
    return _override


ADMIN_ONLY_WRITES = [
    ("POST", "/api/v1/admin/routing-rules", {"rule_key": "x"}),
    ("PATCH", f"/api/v1/admin/routing-rules/{uuid.uuid4()}", {"priority": 1}),
    ("DELETE", f"/api/v1/admin/routing-rules/{uuid.uuid4()}", None),
    ("POST", "/api/v1/admin/operator-groups", {"group_key": "x", "name": "X"}),
    ("DELETE", f"/api/v1/admin/operator-groups/{uuid.uuid4()}", None),
    ("PATCH", "/api/v1/admin/settings", {"support_mailbox": "x@y"}),
    ("GET", "/api/v1/admin/users", None),
    ("DELETE", f"/api/v1/admin/users/{uuid.uuid4()}", None),
]

OPERATOR_READS = [
    ("GET", "/api/v1/admin/routing-rules", None),
    ("GET", "/api/v1/admin/operator-groups", None),
    ("GET", "/api/v1/tickets", None),
    ("POST", "/api/v1/routing/preview", {}),
]


async def _call(role: str, method: str, url: str, body):
    app.dependency_overrides[get_session] = make_session_override(make_mock_session())
    app.dependency_overrides[get_current_user] = make_override_get_current_user(role)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            return await client.request(method, url, json=body)
    finally:
        app.dependency_overrides.clear()


# ─── Role checks ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("method,url,body", ADMIN_ONLY_WRITES)
@pytest.mark.parametrize("role", ["OPERATOR", "REQUESTER"])
async def test_admin_endpoints_reject_non_admins(role, method, url, body):
    response = await _call(role, method, url, body)
    assert response.status_code == 403, f"{role} must not reach {method} {url}"


@pytest.mark.asyncio
@pytest.mark.parametrize("method,url,body", OPERATOR_READS)
async def test_operator_endpoints_reject_requesters(method, url, body):
    response = await _call("REQUESTER", method, url, body)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_operator_can_read_empty_ticket_queue():
    response = await _call("OPERATOR", "GET", "/api/v1/tickets?unassigned=true", None)
    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0, "page": 1, "page_size": 25}


@pytest.mark.asyncio
async def test_rule_endpoints_require_authentication():
    app.dependency_overrides[get_session] = make_session_override(make_mock_session())
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/v1/admin/routing-rules", json={"rule_key": "x"})
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 401


# ─── Tokens and passwords ─────────────────────────────────────────────────────

def test_token_round_trip_claims():
    token = create_access_token(subject="abc", role="ADMIN")
    claims = decode_token(token)
    assert claims["sub"] == "abc"
    assert claims["role"] == "ADMIN"
    assert claims["type"] == "access"


def test_tampered_token_is_rejected():
    from jose import JWTError

    token = create_access_token(subject="abc", role="REQUESTER")
    with pytest.raises(JWTError):
        decode_token(token[:-2] + ("aa" if not token.endswith("aa") else "bb"))


def test_read_access_token_returns_typed_claims():
    from app.core.security import read_access_token

    user_id = uuid.uuid4()
    claims = read_access_token(create_access_token(subject=str(user_id), role="OPERATOR"))
    assert claims.user_id == user_id
    assert claims.role == "OPERATOR"


def _signed(payload: dict) -> str:
    from jose import jwt
    from app.core.config import settings

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.mark.parametrize("payload,error", [
    ({"sub": str(uuid.uuid4()), "role": "ADMIN", "type": "refresh"}, "JWTError"),
    ({"sub": str(uuid.uuid4()), "role": "SUPERUSER", "type": "access"}, "JWTError"),
    ({"role": "ADMIN", "type": "access"}, "JWTError"),
    ({"sub": "not-a-uuid", "role": "ADMIN", "type": "access"}, "ValueError"),
])
def test_read_access_token_rejects_unusable_tokens(payload, error):
    from jose import JWTError
    from app.core.security import read_access_token

    expected = JWTError if error == "JWTError" else ValueError
    with pytest.raises(expected):
        read_access_token(_signed(payload))


def test_password_hash_verifies():
    hashed = hash_password("changeme123")
    assert hashed != "changeme123"
    assert verify_password("changeme123", hashed)
    assert not verify_password("wrong", hashed)


# ─── Store error translation ──────────────────────────────────────────────────

def test_integrity_error_maps_to_conflict():
    from sqlalchemy.exc import IntegrityError, OperationalError

    conflict = translate_store_error(IntegrityError("INSERT", {}, Exception("dup")), "already exists")
    assert isinstance(conflict, RecordConflictError)
    assert conflict.status_code == 409
    assert conflict.message == "already exists"

    outage = translate_store_error(OperationalError("SELECT", {}, Exception("connection refused")), "unused")
    assert not isinstance(outage, RecordConflictError)
    assert outage.status_code == 503
    assert "connection refused" in outage.message


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__(pgcode)
        self.pgcode = pgcode


@pytest.mark.parametrize("pgcode,status_code,message", [
    ("23505", 409, "already exists"),
    ("23503", 409, "removed concurrently"),
    ("23514", 422, "constraint"),
])
def test_integrity_error_message_follows_the_violated_constraint(pgcode, status_code, message):
    from sqlalchemy.exc import IntegrityError

    error = translate_store_error(IntegrityError("INSERT", {}, _PgError(pgcode)), "already exists")
    assert error.status_code == status_code
    assert message in error.message


def test_data_error_is_a_validation_failure_not_an_outage():
    from sqlalchemy.exc import DataError

    error = translate_store_error(DataError("INSERT", {}, _PgError("22003")), "unused")
    assert error.status_code == 422


# ─── Rate limit key ───────────────────────────────────────────────────────────

def _request_with(headers: list[tuple[bytes, bytes]]):
    from starlette.requests import Request

    return Request({
        "type": "http", "method": "POST", "path": "/api/v1/auth/login",
        "headers": headers, "client": ("10.0.0.7", 5555), "query_string": b"",
    })


def test_rate_limit_key_prefers_first_forwarded_hop():
    from app.core.limiter import client_address

    request = _request_with([(b"x-forwarded-for", b"203.0.113.9, 10.0.0.1")])
    assert client_address(request) == "203.0.113.9"


def test_rate_limit_key_falls_back_to_peer_address():
    from app.core.limiter import client_address

    assert client_address(_request_with([])) == "10.0.0.7"
