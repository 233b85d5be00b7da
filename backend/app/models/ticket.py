"""Ticket and ticket comment models.

Only mailbox, ticket_type and category take part in routing.
"""
import uuid

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UUIDMixin

ROUTED_BY = ("rule", "default", "none", "manual")


class Ticket(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tickets"

    ticket_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="new", index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    ticket_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    mailbox: Mapped[str | None] = mapped_column(String(255), nullable=True)
    channel: Mapped[str] = mapped_column(String(20), nullable=False, default="portal")
    requester_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    requester_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Routing outcome
    assignment_group_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("operator_groups.id", ondelete="SET NULL"), nullable=True, index=True
    )
    routing_rule_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("ticket_routing_rules.id", ondelete="SET NULL"), nullable=True
    )
    routed_by: Mapped[str] = mapped_column(String(20), nullable=False, default="none")

    # Inbound mail dedupe key (Message-ID)
    source_message_id: Mapped[str | None] = mapped_column(String(500), unique=True, nullable=True)


class TicketComment(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "ticket_comments"

    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    author_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source_message_id: Mapped[str | None] = mapped_column(String(500), unique=True, nullable=True)
