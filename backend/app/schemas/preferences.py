"""Pydantic schemas for per-user UI preferences."""
from typing import Any

from pydantic import BaseModel, Field


class UserPreferencesOut(BaseModel):
    sidebar_order: list[str] = Field(default_factory=list)
    hidden_widgets: list[str] = Field(default_factory=list)
    widget_settings: dict[str, dict[str, Any]] = Field(default_factory=dict)


class UserPreferencesIn(UserPreferencesOut):
    pass


class SidebarMoveIn(BaseModel):
    item: str = Field(min_length=1)
    to_index: int
