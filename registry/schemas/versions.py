"""Pydantic schemas for component version endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from changelog.classifier import classify_diff
from changelog.messages import ExtractedComponent
from changelog.models import AuditEntry, ComponentVersion, ComponentVersionMap


class RecordSnapshotRequest(BaseModel):
    component_name: str = Field(min_length=1)
    created_by: str = Field(min_length=1)
    snapshot: Any
    thumbnail_url: str | None = None
    library_snapshot: Any = None   # published library copy, for components with no history


class ActionRequest(BaseModel):
    actor: str = Field(min_length=1)
    note: str | None = None


class VersionResponse(BaseModel):
    id: str
    project_id: str
    component_key: str
    component_name: str
    version: str
    status: str
    snapshot: dict
    diff: dict | None = None
    bump_type: str | None = None
    summary: str
    is_breaking: bool = False
    created_by: str
    reviewed_by: str | None = None
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    thumbnail_url: str | None = None
    changelog_message: str | None = None
    superseded_by: str | None = None

    @classmethod
    def from_domain(cls, version: ComponentVersion) -> VersionResponse:
        classified = classify_diff(version.diff) if version.diff is not None else None
        return cls(
            id=version.id,
            project_id=version.project_id,
            component_key=version.component_key,
            component_name=version.component_name,
            version=version.version,
            status=version.status.value,
            snapshot=version.snapshot.to_dict(),
            diff=version.diff.to_dict() if version.diff is not None else None,
            bump_type=version.bump_type.value if version.bump_type else None,
            summary=classified.summary if classified else "Initial version",
            is_breaking=classified.is_breaking if classified else False,
            created_by=version.created_by,
            reviewed_by=version.reviewed_by,
            published_at=version.published_at,
            created_at=version.created_at,
            updated_at=version.updated_at,
            thumbnail_url=version.thumbnail_url,
            changelog_message=version.changelog_message,
            superseded_by=version.superseded_by,
        )


class RecordSnapshotResponse(BaseModel):
    created: bool
    version: VersionResponse | None = None


class SyncRequest(BaseModel):
    created_by: str = Field(min_length=1)
    components: list[ExtractedComponent]
    seed_from_library: bool = False
    library_file_key: str | None = None   # defaults to the project's file key


class SyncResponse(BaseModel):
    created: list[VersionResponse]
    unchanged: list[str]
    conflicts: dict[str, str]


class ComponentVersionsResponse(BaseModel):
    component_key: str
    component_name: str
    published: VersionResponse | None = None
    active: VersionResponse | None = None

    @classmethod
    def from_domain(cls, entry: ComponentVersionMap) -> ComponentVersionsResponse:
        return cls(
            component_key=entry.component_key,
            component_name=entry.component_name,
            published=VersionResponse.from_domain(entry.published) if entry.published else None,
            active=VersionResponse.from_domain(entry.active) if entry.active else None,
        )


class AuditEntryResponse(BaseModel):
    id: int | None = None
    component_version_id: str
    action: str
    performed_by: str
    note: str | None = None
    created_at: datetime

    @classmethod
    def from_domain(cls, entry: AuditEntry) -> AuditEntryResponse:
        return cls(
            id=entry.id,
            component_version_id=entry.component_version_id,
            action=entry.action.value,
            performed_by=entry.performed_by,
            note=entry.note,
            created_at=entry.created_at,
        )
