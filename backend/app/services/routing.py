"""Routing rule store and routing decisions.

Rule CRUD runs on the API's AsyncSession. Snapshot loading has a sync
twin for Celery workers. The matching itself lives in
app.rules.routing_engine and never touches the database.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.core.errors import RecordNotFoundError, RuleValidationError, translate_store_error
from app.models.operator_group import OperatorGroup
from app.models.routing_rule import TicketRoutingRule
from app.rules.routing_engine import RoutingRuleSnapshot, TicketAttributes, explain, select_rule
from app.schemas.routing_rule import RoutingRuleIn, RoutingRuleUpdate
from app.services import audit as audit_svc

logger = logging.getLogger(__name__)

RULE_FIELDS = (
    "rule_key",
    "priority",
    "is_active",
    "match_mailbox",
    "match_ticket_type",
    "match_category",
    "assignment_group_id",
)

# Columns that cannot be cleared by an explicit null in a PATCH.
_NON_NULLABLE = ("rule_key", "priority", "is_active")


# ─── Decisions ───

@dataclass(frozen=True)
class RoutingDecision:
    rule: RoutingRuleSnapshot | None
    assignment_group_id: uuid.UUID | None
    routed_by: str  # rule, default, none
    explanation: str


def decide(
    attrs: TicketAttributes,
    rules: list[RoutingRuleSnapshot],
    default_group_id: uuid.UUID | None = None,
) -> RoutingDecision:
    """Resolve against one rule snapshot, then apply the default-queue policy on no match."""
    rule = select_rule(attrs, rules)
    if rule is not None:
        return RoutingDecision(rule, rule.assignment_group_id, "rule", explain(attrs, rule))
    if default_group_id is not None:
        return RoutingDecision(
            None,
            default_group_id,
            "default",
            explain(attrs, None) + " Routed to the default queue.",
        )
    return RoutingDecision(None, None, "none", explain(attrs, None) + " Ticket left unassigned.")


# ─── Snapshots ───

def _active_rules_stmt():
    return (
        select(TicketRoutingRule)
        .where(TicketRoutingRule.is_active.is_(True))
        .order_by(TicketRoutingRule.priority, TicketRoutingRule.rule_key)
    )


def load_rule_snapshot(db: Session) -> list[RoutingRuleSnapshot]:
    """Active rules as detached snapshots (sync, for workers)."""
    rows = db.execute(_active_rules_stmt()).scalars().all()
    return [RoutingRuleSnapshot.from_row(r) for r in rows]


async def load_rule_snapshot_async(db: AsyncSession) -> list[RoutingRuleSnapshot]:
    """Active rules as detached snapshots (async, for the API)."""
    result = await db.execute(_active_rules_stmt())
    return [RoutingRuleSnapshot.from_row(r) for r in result.scalars().all()]


# ─── Rule store ───

async def list_rules(db: AsyncSession, active_only: bool = False) -> list[TicketRoutingRule]:
    stmt = select(TicketRoutingRule)
    if active_only:
        stmt = stmt.where(TicketRoutingRule.is_active.is_(True))
    stmt = stmt.order_by(TicketRoutingRule.priority, TicketRoutingRule.rule_key)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_rule(db: AsyncSession, rule_id: uuid.UUID) -> TicketRoutingRule:
    result = await db.execute(select(TicketRoutingRule).where(TicketRoutingRule.id == rule_id))
    rule = result.scalar_one_or_none()
    if rule is None:
        raise RecordNotFoundError("Routing rule not found")
    return rule


async def _check_group(db: AsyncSession, group_id: uuid.UUID | None) -> None:
    if group_id is None:
        return
    result = await db.execute(select(OperatorGroup.id).where(OperatorGroup.id == group_id))
    if result.scalar_one_or_none() is None:
        raise RuleValidationError(f"Assignment group {group_id} does not exist")


async def _commit(db: AsyncSession, rule_key: str | None) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Routing rule write failed (%s): %s", rule_key, exc)
        raise translate_store_error(exc, f"A routing rule with key '{rule_key}' already exists") from exc


async def create_rule(db: AsyncSession, data: RoutingRuleIn, actor) -> TicketRoutingRule:
    await _check_group(db, data.assignment_group_id)

    rule = TicketRoutingRule(**data.model_dump(include=set(RULE_FIELDS)))
    db.add(rule)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, f"A routing rule with key '{data.rule_key}' already exists") from exc

    audit_svc.log(
        db,
        action="routing_rule.created",
        entity_type="routing_rule",
        entity_id=rule.id,
        actor_id=actor.id,
        actor_email=actor.email,
        after=data.model_dump(),
    )
    await _commit(db, data.rule_key)
    await db.refresh(rule)
    logger.info("Routing rule %s created by %s (priority=%s)", rule.rule_key, actor.email, rule.priority)
    return rule


async def update_rule(
    db: AsyncSession, rule_id: uuid.UUID, patch: RoutingRuleUpdate, actor
) -> TicketRoutingRule:
    rule = await get_rule(db, rule_id)
    changes = {
        k: v for k, v in patch.model_dump(exclude_unset=True).items()
        if not (k in _NON_NULLABLE and v is None)
    }
    if "assignment_group_id" in changes:
        await _check_group(db, changes["assignment_group_id"])

    before = audit_svc.snapshot(rule, RULE_FIELDS)
    for field_name, value in changes.items():
        setattr(rule, field_name, value)

    audit_svc.log(
        db,
        action="routing_rule.updated",
        entity_type="routing_rule",
        entity_id=rule.id,
        actor_id=actor.id,
        actor_email=actor.email,
        before=before,
        after=audit_svc.snapshot(rule, RULE_FIELDS),
    )
    await _commit(db, changes.get("rule_key", rule.rule_key))
    await db.refresh(rule)
    return rule


async def delete_rule(db: AsyncSession, rule_id: uuid.UUID, actor) -> None:
    rule = await get_rule(db, rule_id)
    before = audit_svc.snapshot(rule, RULE_FIELDS)
    await db.delete(rule)
    audit_svc.log(
        db,
        action="routing_rule.deleted",
        entity_type="routing_rule",
        entity_id=rule_id,
        actor_id=actor.id,
        actor_email=actor.email,
        before=before,
    )
    await _commit(db, before["rule_key"])
    logger.info("Routing rule %s deleted by %s", before["rule_key"], actor.email)
