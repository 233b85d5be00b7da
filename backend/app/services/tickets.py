"""Ticket intake and re-routing.

Every new ticket is routed exactly once at creation: one snapshot of the
active rules is loaded, resolved against the ticket's mailbox, type and
category, and the default-queue policy applied on no match. Operators
can re-route afterwards.
"""
import logging
import re
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.core.errors import RecordNotFoundError, RuleValidationError, translate_store_error
from app.models.operator_group import OperatorGroup
from app.models.ticket import Ticket
from app.rules.routing_engine import TicketAttributes
from app.schemas.ticket import TicketCreate
from app.services import audit as audit_svc
from app.services import routing as routing_svc
from app.services import system_settings as settings_svc

logger = logging.getLogger(__name__)

TICKET_NUMBER_RE = re.compile(r"\bT-\d{4}-\d{6}\b")


# ─── Ticket numbers ───

def format_ticket_number(seq: int, year: int | None = None) -> str:
    year = year or datetime.now(timezone.utc).year
    return f"T-{year}-{seq:06d}"


def extract_ticket_number(text: str | None) -> str | None:
    """Find a T-YYYY-NNNNNN reference in free text (subject, body)."""
    if not text:
        return None
    m = TICKET_NUMBER_RE.search(text.upper())
    return m.group(0) if m else None


_next_seq = select(func.nextval("ticket_number_seq"))


def next_ticket_number_sync(db: Session) -> str:
    return format_ticket_number(db.execute(_next_seq).scalar_one())


async def next_ticket_number(db: AsyncSession) -> str:
    result = await db.execute(_next_seq)
    return format_ticket_number(result.scalar_one())


# ─── Routing ───

def apply_decision(ticket: Ticket, decision: routing_svc.RoutingDecision) -> None:
    ticket.assignment_group_id = decision.assignment_group_id
    ticket.routing_rule_id = decision.rule.id if decision.rule is not None else None
    ticket.routed_by = decision.routed_by


def log_routing(db, ticket: Ticket, decision: routing_svc.RoutingDecision, actor_id=None, actor_email=None) -> None:
    audit_svc.log(
        db,
        action="ticket.routed",
        entity_type="ticket",
        entity_id=ticket.id,
        actor_id=actor_id,
        actor_email=actor_email,
        after={
            "assignment_group_id": decision.assignment_group_id,
            "routing_rule_id": ticket.routing_rule_id,
            "routed_by": decision.routed_by,
        },
        notes=decision.explanation,
    )


async def route_attributes(db: AsyncSession, attrs: TicketAttributes) -> routing_svc.RoutingDecision:
    """Resolve against the live rule set without writing anything."""
    rules = await routing_svc.load_rule_snapshot_async(db)
    default_group_id = await settings_svc.live_default_group_id(db)
    return routing_svc.decide(attrs, rules, default_group_id)


def route_attributes_sync(db: Session, attrs: TicketAttributes) -> routing_svc.RoutingDecision:
    rules = routing_svc.load_rule_snapshot(db)
    return routing_svc.decide(attrs, rules, settings_svc.live_default_group_id_sync(db))


# ─── API intake ───

async def create_ticket(db: AsyncSession, data: TicketCreate, actor) -> Ticket:
    decision = await route_attributes(db, data.routing_attributes())

    ticket = Ticket(
        ticket_number=await next_ticket_number(db),
        title=data.title,
        description=data.description,
        status="new",
        priority=data.priority,
        ticket_type=data.ticket_type,
        category=data.category,
        mailbox=data.mailbox,
        channel="portal",
        requester_email=data.requester_email or actor.email,
        requester_name=data.requester_name or actor.name,
    )
    apply_decision(ticket, decision)
    db.add(ticket)
    try:
        await db.flush()
        log_routing(db, ticket, decision, actor_id=actor.id, actor_email=actor.email)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, "Ticket number already taken; retry") from exc
    await db.refresh(ticket)

    logger.info(
        "Ticket %s created; routed_by=%s group=%s",
        ticket.ticket_number, decision.routed_by, decision.assignment_group_id,
    )
    return ticket


async def list_tickets(
    db: AsyncSession,
    page: int,
    page_size: int,
    assignment_group_id: uuid.UUID | None = None,
    unassigned: bool = False,
    status: str | None = None,
) -> tuple[list[Ticket], int]:
    """Queue view, newest first. A group filter wins over ``unassigned``."""
    stmt = select(Ticket)
    if assignment_group_id:
        stmt = stmt.where(Ticket.assignment_group_id == assignment_group_id)
    elif unassigned:
        stmt = stmt.where(Ticket.assignment_group_id.is_(None))
    if status:
        stmt = stmt.where(Ticket.status == status)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(
        stmt.order_by(Ticket.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    )
    return list(result.scalars().all()), total


async def get_ticket(db: AsyncSession, ticket_id: uuid.UUID) -> Ticket:
    result = await db.execute(select(Ticket).where(Ticket.id == ticket_id))
    ticket = result.scalar_one_or_none()
    if ticket is None:
        raise RecordNotFoundError("Ticket not found")
    return ticket


async def reassign_ticket(
    db: AsyncSession, ticket_id: uuid.UUID, group_id: uuid.UUID | None, actor, notes: str | None = None
) -> Ticket:
    """Manual re-route. Clears routing_rule_id since no rule made this decision."""
    ticket = await get_ticket(db, ticket_id)
    if group_id is not None:
        found = await db.execute(select(OperatorGroup.id).where(OperatorGroup.id == group_id))
        if found.scalar_one_or_none() is None:
            raise RuleValidationError(f"Assignment group {group_id} does not exist")

    before = audit_svc.snapshot(ticket, ("assignment_group_id", "routing_rule_id", "routed_by"))
    ticket.assignment_group_id = group_id
    ticket.routing_rule_id = None
    ticket.routed_by = "manual"
    audit_svc.log(
        db,
        action="ticket.reassigned",
        entity_type="ticket",
        entity_id=ticket.id,
        actor_id=actor.id,
        actor_email=actor.email,
        before=before,
        after={"assignment_group_id": group_id, "routing_rule_id": None, "routed_by": "manual"},
        notes=notes,
    )
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, "Ticket was changed concurrently; retry") from exc
    await db.refresh(ticket)
    return ticket
