"""SQLAlchemy model for ticket routing rules."""
import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UUIDMixin


class TicketRoutingRule(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "ticket_routing_rules"

    rule_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # NULL match fields are wildcards.
    match_mailbox: Mapped[str | None] = mapped_column(String(255), nullable=True)
    match_ticket_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    match_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assignment_group_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("operator_groups.id", ondelete="SET NULL"), nullable=True
    )
