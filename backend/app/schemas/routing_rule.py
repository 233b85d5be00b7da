"""Pydantic schemas for ticket routing rules."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings

# priority is a 32-bit INTEGER column
PRIORITY_MIN = -(2**31)
PRIORITY_MAX = 2**31 - 1


class _RuleFieldCleaner(BaseModel):
    """Normalise form input the way the admin screen sends it: trimmed, blanks are unset."""

    @field_validator("rule_key", mode="before", check_fields=False)
    @classmethod
    def _strip_rule_key(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("match_mailbox", "match_ticket_type", "match_category", mode="before", check_fields=False)
    @classmethod
    def _blank_match_is_wildcard(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("assignment_group_id", mode="before", check_fields=False)
    @classmethod
    def _blank_group_is_unassigned(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class RoutingRuleIn(_RuleFieldCleaner):
    rule_key: str = Field(min_length=1, max_length=100)
    priority: int = Field(default=settings.DEFAULT_RULE_PRIORITY, ge=PRIORITY_MIN, le=PRIORITY_MAX)
    is_active: bool = True
    match_mailbox: str | None = Field(default=None, max_length=255)
    match_ticket_type: str | None = Field(default=None, max_length=100)
    match_category: str | None = Field(default=None, max_length=100)
    assignment_group_id: uuid.UUID | None = None


class RoutingRuleUpdate(_RuleFieldCleaner):
    """Partial update. Omitted fields are left alone; an explicit null clears a match field."""

    rule_key: str | None = Field(default=None, min_length=1, max_length=100)
    priority: int | None = Field(default=None, ge=PRIORITY_MIN, le=PRIORITY_MAX)
    is_active: bool | None = None
    match_mailbox: str | None = Field(default=None, max_length=255)
    match_ticket_type: str | None = Field(default=None, max_length=100)
    match_category: str | None = Field(default=None, max_length=100)
    assignment_group_id: uuid.UUID | None = None


class RoutingRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rule_key: str
    priority: int
    is_active: bool
    match_mailbox: str | None
    match_ticket_type: str | None
    match_category: str | None
    assignment_group_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime


# ─── Preview ───

class RoutingPreviewIn(BaseModel):
    mailbox: str | None = None
    ticket_type: str | None = None
    category: str | None = None


class MatchedRule(BaseModel):
    id: uuid.UUID
    rule_key: str
    priority: int


class RoutingDecisionOut(BaseModel):
    matched_rule: MatchedRule | None
    assignment_group_id: uuid.UUID | None
    routed_by: str
    explanation: str
