"""Pydantic schemas for tickets."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.rules.routing_engine import TicketAttributes

TICKET_PRIORITIES = ("low", "medium", "high", "critical")


class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    priority: str = "medium"
    ticket_type: str | None = Field(default=None, max_length=100)
    category: str | None = Field(default=None, max_length=100)
    mailbox: str | None = Field(default=None, max_length=255)
    requester_email: EmailStr | None = None
    requester_name: str | None = Field(default=None, max_length=255)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("ticket_type", "category", "mailbox", mode="before")
    @classmethod
    def _blank_is_absent(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("priority")
    @classmethod
    def _known_priority(cls, v: str) -> str:
        if v not in TICKET_PRIORITIES:
            raise ValueError(f"priority must be one of {', '.join(TICKET_PRIORITIES)}")
        return v

    def routing_attributes(self) -> TicketAttributes:
        return TicketAttributes(mailbox=self.mailbox, ticket_type=self.ticket_type, category=self.category)


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    ticket_number: str
    title: str
    description: str | None
    status: str
    priority: str
    ticket_type: str | None
    category: str | None
    mailbox: str | None
    channel: str
    requester_email: str | None
    requester_name: str | None
    assignment_group_id: uuid.UUID | None
    routing_rule_id: uuid.UUID | None
    routed_by: str
    created_at: datetime
    updated_at: datetime


class TicketListResponse(BaseModel):
    items: list[TicketOut]
    total: int
    page: int
    page_size: int


class TicketAssignmentUpdate(BaseModel):
    """Manual re-route. A null group leaves the ticket unassigned."""

    assignment_group_id: uuid.UUID | None = None
    notes: str | None = None
