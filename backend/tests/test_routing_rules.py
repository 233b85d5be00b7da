"""Tests for the routing rule store and its admin endpoints.

Endpoint tests override auth and patch the service layer; service tests
drive app.services.routing against mocked AsyncSessions.
"""
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient, ASGITransport
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.deps import get_current_user
from app.core.errors import DataAccessError, RecordConflictError, RecordNotFoundError, RuleValidationError
from app.db.session import get_session
from app.main import app
from app.schemas.routing_rule import RoutingRuleIn, RoutingRuleUpdate


# ─── Helpers ──────────────────────────────────────────────────────────────────

class FakeUser:
    """Minimal user stub for dependency overrides."""

    def __init__(self, role: str = "ADMIN", email: str = "admin@example.com"):
        self.id = uuid.UUID("f96955d0-752f-4e0c-b1dc-d26d8dd1460e")
        self.email = email
        self.name = "Test User"
        self.role = role
        self.is_active = True
        self.deleted_at = None


class FakeRule:
    """Routing rule row as returned by the store."""

    def __init__(self, rule_key="support_mailbox", priority=100, **kwargs):
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.id = kwargs.get("id", uuid.uuid4())
        self.rule_key = rule_key
        self.priority = priority
        self.is_active = kwargs.get("is_active", True)
        self.match_mailbox = kwargs.get("match_mailbox")
        self.match_ticket_type = kwargs.get("match_ticket_type")
        self.match_category = kwargs.get("match_category")
        self.assignment_group_id = kwargs.get("assignment_group_id")
        self.created_at = now
        self.updated_at = now


def make_session_override(mock_session):
    async def _override():
        yield mock_session
    return _override


def make_user_override(role: str):
    async def _override():
        return FakeUser(role=role)
    return _override


def _mock_session(row=None):
    """AsyncSession whose every execute() returns ``row`` for scalar_one_or_none."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    result.scalars.return_value.all.return_value = [row] if row is not None else []

    db = AsyncMock()
    db.execute = AsyncMock(return_value=result)
    db.add = MagicMock()
    return db


async def _request(method: str, url: str, role: str = "ADMIN", **kwargs):
    app.dependency_overrides[get_session] = make_session_override(_mock_session())
    app.dependency_overrides[get_current_user] = make_user_override(role)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            return await client.request(method, url, **kwargs)
    finally:
        app.dependency_overrides.clear()


# ─── Authorization ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_operator_cannot_create_rule():
    response = await _request(
        "POST", "/api/v1/admin/routing-rules", role="OPERATOR",
        json={"rule_key": "x", "priority": 10},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_operator_cannot_delete_rule():
    response = await _request("DELETE", f"/api/v1/admin/routing-rules/{uuid.uuid4()}", role="OPERATOR")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_requester_cannot_list_rules():
    response = await _request("GET", "/api/v1/admin/routing-rules", role="REQUESTER")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_rules_requires_auth():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/admin/routing-rules")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_operator_can_list_rules():
    rules = [FakeRule("first", 10), FakeRule("second", 20, match_category="network")]
    with patch("app.services.routing.list_rules", AsyncMock(return_value=rules)) as mock_list:
        response = await _request("GET", "/api/v1/admin/routing-rules?active_only=true", role="OPERATOR")

    assert response.status_code == 200
    body = response.json()
    assert [r["rule_key"] for r in body] == ["first", "second"]
    assert body[1]["match_category"] == "network"
    assert mock_list.await_args.kwargs["active_only"] is True


# ─── Validation ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"rule_key": "", "priority": 10},
    {"rule_key": "   ", "priority": 10},
    {"priority": 10},
    {"rule_key": "x", "priority": "abc"},
    {"rule_key": "x", "priority": 10.5},
    {"rule_key": "x", "priority": 2**40},
    {"rule_key": "x", "priority": -(2**31) - 1},
    {"rule_key": "x", "match_ticket_type": "t" * 101},
    {"rule_key": "x", "assignment_group_id": "not-a-uuid"},
])
async def test_create_rule_rejects_invalid_payload(payload):
    with patch("app.services.routing.create_rule", AsyncMock()) as mock_create:
        response = await _request("POST", "/api/v1/admin/routing-rules", json=payload)

    assert response.status_code == 422
    mock_create.assert_not_awaited()


def test_rule_input_blanks_become_wildcards():
    data = RoutingRuleIn(
        rule_key="  incidents  ",
        match_mailbox="",
        match_ticket_type=" incident ",
        match_category="   ",
        assignment_group_id="",
    )
    assert data.rule_key == "incidents"
    assert data.match_mailbox is None
    assert data.match_ticket_type == "incident"
    assert data.match_category is None
    assert data.assignment_group_id is None
    assert data.priority == 100
    assert data.is_active is True


def test_rule_priority_accepts_the_full_integer_column_range():
    assert RoutingRuleIn(rule_key="last", priority=2**31 - 1).priority == 2**31 - 1
    assert RoutingRuleIn(rule_key="first", priority=-(2**31)).priority == -(2**31)
    with pytest.raises(ValidationError):
        RoutingRuleUpdate(priority=2**31)


def test_rule_input_keeps_case_and_negative_priority():
    data = RoutingRuleIn(rule_key="vip", priority=-10, match_mailbox="VIP@Example.com")
    assert data.priority == -10
    assert data.match_mailbox == "VIP@Example.com"


# ─── Endpoint happy paths / error mapping ─────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_creates_rule():
    group_id = uuid.uuid4()
    created = FakeRule("incidents", 50, match_ticket_type="incident", assignment_group_id=group_id)
    with patch("app.services.routing.create_rule", AsyncMock(return_value=created)) as mock_create:
        response = await _request(
            "POST", "/api/v1/admin/routing-rules",
            json={
                "rule_key": "incidents",
                "priority": 50,
                "match_mailbox": "",
                "match_ticket_type": "incident",
                "assignment_group_id": str(group_id),
            },
        )

    assert response.status_code == 201
    body = response.json()
    assert body["rule_key"] == "incidents"
    assert body["assignment_group_id"] == str(group_id)

    sent = mock_create.await_args.args[1]
    assert sent.match_mailbox is None
    assert sent.match_ticket_type == "incident"


@pytest.mark.asyncio
async def test_duplicate_rule_key_returns_409():
    with patch(
        "app.services.routing.create_rule",
        AsyncMock(side_effect=RecordConflictError("A routing rule with key 'dup' already exists")),
    ):
        response = await _request("POST", "/api/v1/admin/routing-rules", json={"rule_key": "dup"})

    assert response.status_code == 409
    assert "dup" in response.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_group_returns_422():
    with patch(
        "app.services.routing.create_rule",
        AsyncMock(side_effect=RuleValidationError("Assignment group does not exist")),
    ):
        response = await _request(
            "POST", "/api/v1/admin/routing-rules",
            json={"rule_key": "x", "assignment_group_id": str(uuid.uuid4())},
        )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_store_unavailable_returns_503():
    with patch("app.services.routing.list_rules", AsyncMock(side_effect=DataAccessError("connection refused"))):
        response = await _request("GET", "/api/v1/admin/routing-rules")
    assert response.status_code == 503
    assert response.json()["detail"] == "connection refused"


@pytest.mark.asyncio
async def test_update_missing_rule_returns_404():
    with patch(
        "app.services.routing.update_rule",
        AsyncMock(side_effect=RecordNotFoundError("Routing rule not found")),
    ):
        response = await _request(
            "PATCH", f"/api/v1/admin/routing-rules/{uuid.uuid4()}", json={"priority": 5},
        )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_sends_only_given_fields():
    updated = FakeRule("incidents", 5)
    with patch("app.services.routing.update_rule", AsyncMock(return_value=updated)) as mock_update:
        response = await _request(
            "PATCH", f"/api/v1/admin/routing-rules/{updated.id}",
            json={"priority": 5, "match_mailbox": None},
        )

    assert response.status_code == 200
    patch_data = mock_update.await_args.args[2]
    assert patch_data.model_dump(exclude_unset=True) == {"priority": 5, "match_mailbox": None}


@pytest.mark.asyncio
async def test_admin_deletes_rule():
    with patch("app.services.routing.delete_rule", AsyncMock(return_value=None)) as mock_delete:
        response = await _request("DELETE", f"/api/v1/admin/routing-rules/{uuid.uuid4()}")
    assert response.status_code == 204
    mock_delete.assert_awaited_once()


# ─── Service layer ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_rule_duplicate_key_raises_conflict():
    from app.services import routing as routing_svc

    db = _mock_session()
    db.flush = AsyncMock(side_effect=IntegrityError(
        "INSERT INTO ticket_routing_rules", {}, Exception("duplicate key value violates unique constraint"),
    ))

    with pytest.raises(RecordConflictError) as exc_info:
        await routing_svc.create_rule(db, RoutingRuleIn(rule_key="dup"), FakeUser())

    assert "dup" in exc_info.value.message
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_rule_connection_failure_is_data_access_error():
    from app.services import routing as routing_svc

    db = _mock_session()
    db.flush = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("server closed the connection")))

    with pytest.raises(DataAccessError) as exc_info:
        await routing_svc.create_rule(db, RoutingRuleIn(rule_key="x"), FakeUser())

    assert not isinstance(exc_info.value, RecordConflictError)
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_create_rule_unknown_group_is_rejected_before_insert():
    from app.services import routing as routing_svc

    db = _mock_session(row=None)
    data = RoutingRuleIn(rule_key="x", assignment_group_id=uuid.uuid4())

    with pytest.raises(RuleValidationError):
        await routing_svc.create_rule(db, data, FakeUser())
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_create_rule_writes_audit_entry_and_commits():
    from app.models.audit import AuditLog
    from app.models.routing_rule import TicketRoutingRule
    from app.services import routing as routing_svc

    db = _mock_session()
    rule = await routing_svc.create_rule(
        db, RoutingRuleIn(rule_key="network", priority=20, match_category="network"), FakeUser(),
    )

    assert isinstance(rule, TicketRoutingRule)
    assert rule.rule_key == "network"
    assert rule.priority == 20
    assert rule.match_category == "network"
    assert rule.match_mailbox is None

    added = [call.args[0] for call in db.add.call_args_list]
    audits = [a for a in added if isinstance(a, AuditLog)]
    assert len(audits) == 1
    assert audits[0].action == "routing_rule.created"
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_rule_clears_match_field_but_ignores_null_priority():
    from app.services import routing as routing_svc

    rule = FakeRule("mailbox_rule", 100, match_mailbox="support@x", match_category="network")
    db = _mock_session(row=rule)

    patch_data = RoutingRuleUpdate.model_validate(
        {"match_mailbox": None, "priority": None, "match_category": "hardware"}
    )
    result = await routing_svc.update_rule(db, rule.id, patch_data, FakeUser())

    assert result is rule
    assert rule.match_mailbox is None
    assert rule.match_category == "hardware"
    assert rule.priority == 100
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_rule_missing_raises_not_found():
    from app.services import routing as routing_svc

    db = _mock_session(row=None)
    with pytest.raises(RecordNotFoundError):
        await routing_svc.update_rule(db, uuid.uuid4(), RoutingRuleUpdate(priority=1), FakeUser())


@pytest.mark.asyncio
async def test_delete_rule_removes_row_and_audits():
    from app.models.audit import AuditLog
    from app.services import routing as routing_svc

    rule = FakeRule("old_rule", 10)
    db = _mock_session(row=rule)

    await routing_svc.delete_rule(db, rule.id, FakeUser())

    db.delete.assert_awaited_once_with(rule)
    audit = db.add.call_args.args[0]
    assert isinstance(audit, AuditLog)
    assert audit.action == "routing_rule.deleted"
    assert '"old_rule"' in audit.before_state
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_rule_missing_raises_not_found():
    from app.services import routing as routing_svc

    db = _mock_session(row=None)
    with pytest.raises(RecordNotFoundError):
        await routing_svc.delete_rule(db, uuid.uuid4(), FakeUser())
    db.delete.assert_not_awaited()
