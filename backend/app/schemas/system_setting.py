"""Pydantic schemas for admin-editable system settings."""
import uuid

from pydantic import BaseModel, field_validator


class SystemSettingsOut(BaseModel):
    support_mailbox: str | None = None
    noreply_mailbox: str | None = None
    default_assignment_group_id: uuid.UUID | None = None


class SystemSettingsUpdate(BaseModel):
    support_mailbox: str | None = None
    noreply_mailbox: str | None = None
    default_assignment_group_id: uuid.UUID | None = None

    @field_validator("support_mailbox", "noreply_mailbox", mode="before")
    @classmethod
    def _blank_mailbox(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("default_assignment_group_id", mode="before")
    @classmethod
    def _blank_group(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v
