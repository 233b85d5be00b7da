"""Inbound mail → ticket intake (sync, runs inside Celery).

A message that references an existing ticket number becomes a comment on
that ticket; anything else becomes a new customer-service ticket routed
by the rule set. Messages are deduplicated on their Message-ID.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import is_unique_violation
from app.models.ticket import Ticket, TicketComment
from app.rules.routing_engine import TicketAttributes
from app.services import audit as audit_svc
from app.services import system_settings as settings_svc
from app.services import tickets as ticket_svc

logger = logging.getLogger(__name__)

EMAIL_TICKET_TYPE = "customer_service"
EMAIL_CATEGORY = "Customer Support"

# Column widths on tickets / ticket_comments.
MESSAGE_ID_MAX = 500
ADDRESS_MAX = 255
NAME_MAX = 255


def _clip(value, limit: int) -> str | None:
    value = (value or "").strip()
    return value[:limit] or None


@dataclass
class InboundMessage:
    message_id: str
    subject: str | None = None
    body: str | None = None
    from_email: str | None = None
    from_name: str | None = None
    to: list[str] = field(default_factory=list)
    received_at: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "InboundMessage":
        to = payload.get("to") or []
        if isinstance(to, str):
            to = [to]
        return cls(
            message_id=str(payload["message_id"]).strip()[:MESSAGE_ID_MAX],
            subject=payload.get("subject"),
            body=payload.get("body"),
            from_email=_clip(payload.get("from_email"), ADDRESS_MAX),
            from_name=_clip(payload.get("from_name"), NAME_MAX),
            to=[a for a in (_clip(a, ADDRESS_MAX) for a in to) if a],
            received_at=payload.get("received_at"),
        )


def format_inbound_body(msg: InboundMessage) -> str:
    sender = msg.from_email or "unknown"
    from_line = f"{msg.from_name} <{sender}>" if msg.from_name else sender
    return (
        f"Inbound email from: {from_line}\n"
        f"Received: {msg.received_at or ''}\n"
        f"MessageId: {msg.message_id}\n\n"
        f"{(msg.body or '').strip()}"
    )


def _duplicate(msg: InboundMessage) -> dict:
    return {"status": "duplicate", "message_id": msg.message_id}


def _commit_or_duplicate(db: Session, msg: InboundMessage, after_flush=None) -> bool:
    """Flush, run ``after_flush``, commit.

    Returns False when a concurrent delivery of the same Message-ID won the
    insert; the session is rolled back. Other integrity failures propagate.
    """
    try:
        db.flush()
        if after_flush is not None:
            after_flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_unique_violation(exc):
            raise
        logger.info("Inbound message %s ingested concurrently, skipping", msg.message_id)
        return False
    return True


def _already_ingested(db: Session, message_id: str) -> bool:
    ticket_hit = db.execute(
        select(Ticket.id).where(Ticket.source_message_id == message_id)
    ).scalars().first()
    if ticket_hit is not None:
        return True
    comment_hit = db.execute(
        select(TicketComment.id).where(TicketComment.source_message_id == message_id)
    ).scalars().first()
    return comment_hit is not None


def _resolve_mailbox(db: Session, msg: InboundMessage) -> str:
    if msg.to:
        return msg.to[0]
    configured = settings_svc.get_settings_sync(db).support_mailbox
    return configured or settings.SUPPORT_MAILBOX


def ingest_message(db: Session, msg: InboundMessage) -> dict:
    """Turn one inbound message into a ticket or a comment. Caller owns the session."""
    if _already_ingested(db, msg.message_id):
        logger.info("Inbound message %s already ingested, skipping", msg.message_id)
        return _duplicate(msg)

    referenced = ticket_svc.extract_ticket_number(msg.subject) or ticket_svc.extract_ticket_number(msg.body)
    if referenced:
        existing = db.execute(
            select(Ticket).where(Ticket.ticket_number == referenced)
        ).scalars().first()
        if existing is not None:
            return _append_comment(db, existing, msg)
        logger.info("Message %s references unknown ticket %s; opening a new one", msg.message_id, referenced)

    return _create_ticket(db, msg)


def _append_comment(db: Session, ticket: Ticket, msg: InboundMessage) -> dict:
    comment = TicketComment(
        ticket_id=ticket.id,
        body=format_inbound_body(msg),
        author_email=msg.from_email,
        is_internal=False,
        source_message_id=msg.message_id,
    )
    db.add(comment)
    ticket.updated_at = datetime.now(timezone.utc)
    audit_svc.log(
        db,
        action="ticket.email_reply",
        entity_type="ticket",
        entity_id=ticket.id,
        actor_email=settings.SYSTEM_USER_EMAIL,
        notes=f"Reply from {msg.from_email or 'unknown'} ({msg.message_id})",
    )
    if not _commit_or_duplicate(db, msg):
        return _duplicate(msg)
    logger.info("Inbound message %s appended to %s", msg.message_id, ticket.ticket_number)
    return {"status": "commented", "ticket_id": str(ticket.id), "ticket_number": ticket.ticket_number}


def _create_ticket(db: Session, msg: InboundMessage) -> dict:
    mailbox = _resolve_mailbox(db, msg)
    attrs = TicketAttributes(mailbox=mailbox, ticket_type=EMAIL_TICKET_TYPE, category=EMAIL_CATEGORY)
    decision = ticket_svc.route_attributes_sync(db, attrs)

    ticket = Ticket(
        ticket_number=ticket_svc.next_ticket_number_sync(db),
        title=((msg.subject or "").strip() or "(no subject)")[:500],
        description=format_inbound_body(msg),
        status="new",
        priority="medium",
        ticket_type=EMAIL_TICKET_TYPE,
        category=EMAIL_CATEGORY,
        mailbox=mailbox,
        channel="email",
        requester_email=msg.from_email,
        requester_name=msg.from_name,
        source_message_id=msg.message_id,
    )
    ticket_svc.apply_decision(ticket, decision)
    db.add(ticket)

    def log_routing():
        # needs ticket.id, so it runs after the flush
        ticket_svc.log_routing(db, ticket, decision, actor_email=settings.SYSTEM_USER_EMAIL)

    if not _commit_or_duplicate(db, msg, after_flush=log_routing):
        return _duplicate(msg)

    logger.info(
        "Inbound message %s -> %s (mailbox=%s routed_by=%s)",
        msg.message_id, ticket.ticket_number, mailbox, decision.routed_by,
    )
    return {
        "status": "created",
        "ticket_id": str(ticket.id),
        "ticket_number": ticket.ticket_number,
        "routed_by": decision.routed_by,
        "assignment_group_id": str(decision.assignment_group_id) if decision.assignment_group_id else None,
    }
