"""Pydantic schemas for library release endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from changelog.differ import BumpType


class ReleaseChangeResponse(BaseModel):
    component_key: str
    component_name: str
    change_type: str
    from_version: str | None = None
    to_version: str | None = None
    bump_type: str | None = None
    changelog_message: str | None = None

    model_config = {"from_attributes": True}


class ReleaseCreate(BaseModel):
    bump_type: BumpType
    published_by: str = Field(min_length=1)
    changelog_message: str | None = None


class ReleaseResponse(BaseModel):
    id: str
    project_id: str
    version: str
    bump_type: BumpType
    published_by: str
    published_at: datetime
    changelog_message: str | None = None
    changes: list[ReleaseChangeResponse] = []

    model_config = {"from_attributes": True}
