"""Pydantic schemas for project endpoints."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1)
    figma_file_key: str | None = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    figma_file_key: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
