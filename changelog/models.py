"""Domain records for versioned components, audit entries and library releases."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from changelog.differ import BumpType, SnapshotDiff
from changelog.snapshot import Snapshot


class VersionStatus(str, enum.Enum):
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    PUBLISHED = "published"
    DEPRECATED = "deprecated"


ACTIVE_STATUSES = {VersionStatus.DRAFT, VersionStatus.IN_REVIEW, VersionStatus.APPROVED}


class AuditAction(str, enum.Enum):
    CREATED = "created"
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    APPROVED = "approved"
    PUBLISHED = "published"
    REJECTED = "rejected"
    DEPRECATED = "deprecated"


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ComponentVersion:
    id: str
    project_id: str
    component_key: str
    component_name: str
    version: str
    status: VersionStatus
    snapshot: Snapshot
    diff: SnapshotDiff | None
    bump_type: BumpType | None
    created_by: str
    created_at: datetime
    updated_at: datetime
    reviewed_by: str | None = None
    published_at: datetime | None = None
    thumbnail_url: str | None = None
    changelog_message: str | None = None
    superseded_by: str | None = None

    @property
    def is_first_version(self) -> bool:
        return self.diff is None


@dataclass(frozen=True)
class AuditEntry:
    component_version_id: str
    action: AuditAction
    performed_by: str
    created_at: datetime
    note: str | None = None
    id: int | None = None   # assigned by the store on append


@dataclass(frozen=True)
class LibraryRelease:
    id: str
    project_id: str
    version: str
    bump_type: BumpType
    published_by: str
    published_at: datetime
    changelog_message: str | None = None


@dataclass(frozen=True)
class ReleaseMember:
    library_version_id: str
    component_version_id: str
    component_key: str
    component_name: str


@dataclass(frozen=True)
class ComponentVersionMap:
    """Where a component stands: its live published version and any version in flight."""

    component_key: str
    component_name: str
    published: ComponentVersion | None = None
    active: ComponentVersion | None = None
