"""Pydantic schemas for operator groups (queues)."""
import re
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

QUEUE_SUFFIX = "-queue"


def normalize_group_key(key: str) -> str:
    """'Service Desk' -> 'service-desk-queue'. Keys already ending in -queue keep a single suffix."""
    trimmed = re.sub(r"\s+", "-", key.strip().lower())
    return trimmed if trimmed.endswith(QUEUE_SUFFIX) else f"{trimmed}{QUEUE_SUFFIX}"


class _GroupFieldCleaner(BaseModel):
    @field_validator("group_key", "name", mode="before", check_fields=False)
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("description", mode="before", check_fields=False)
    @classmethod
    def _blank_description(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class OperatorGroupIn(_GroupFieldCleaner):
    group_key: str = Field(min_length=1, max_length=94)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    is_active: bool = True


class OperatorGroupUpdate(_GroupFieldCleaner):
    group_key: str | None = Field(default=None, min_length=1, max_length=94)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None


class OperatorGroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    group_key: str
    name: str
    description: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class GroupMemberIn(BaseModel):
    user_id: uuid.UUID


class GroupMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_id: uuid.UUID
    user_id: uuid.UUID
    created_at: datetime
