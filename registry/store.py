"""SQL-backed VersionStore: every write runs in a single transaction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from changelog.differ import BumpType, SnapshotDiff
from changelog.models import (
    ACTIVE_STATUSES,
    AuditAction,
    AuditEntry,
    ComponentVersion,
    LibraryRelease,
    ReleaseMember,
    VersionStatus,
)
from changelog.snapshot import Snapshot
from registry.entities import AuditLog, ComponentVersionRecord, LibraryVersion, LibraryVersionComponent

logger = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands datetimes back naive; they were written as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(version: ComponentVersion) -> ComponentVersionRecord:
    return ComponentVersionRecord(
        id=version.id,
        project_id=version.project_id,
        component_key=version.component_key,
        component_name=version.component_name,
        version=version.version,
        status=version.status.value,
        snapshot=version.snapshot.raw,
        diff=version.diff.to_dict() if version.diff is not None else None,
        bump_type=version.bump_type.value if version.bump_type else None,
        created_by=version.created_by,
        reviewed_by=version.reviewed_by,
        published_at=version.published_at,
        created_at=version.created_at,
        updated_at=version.updated_at,
        thumbnail_url=version.thumbnail_url,
        changelog_message=version.changelog_message,
        superseded_by=version.superseded_by,
    )


def _to_version(record: ComponentVersionRecord) -> ComponentVersion:
    snapshot = Snapshot.from_extracted(record.snapshot)
    if not snapshot.component_key:
        # Opaque payloads lose their key; the row still has it
        snapshot = Snapshot(
            component_key=record.component_key,
            property_definitions=snapshot.property_definitions,
            variables_used=snapshot.variables_used,
            geometry=snapshot.geometry,
            raw=snapshot.raw,
            opaque=snapshot.opaque,
        )
    return ComponentVersion(
        id=record.id,
        project_id=record.project_id,
        component_key=record.component_key,
        component_name=record.component_name,
        version=record.version,
        status=VersionStatus(record.status),
        snapshot=snapshot,
        diff=SnapshotDiff.from_dict(record.diff),
        bump_type=BumpType(record.bump_type) if record.bump_type else None,
        created_by=record.created_by,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
        reviewed_by=record.reviewed_by,
        published_at=_aware(record.published_at),
        thumbnail_url=record.thumbnail_url,
        changelog_message=record.changelog_message,
        superseded_by=record.superseded_by,
    )


def _to_entry(row: AuditLog) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        component_version_id=row.component_version_id,
        action=AuditAction(row.action),
        performed_by=row.performed_by,
        note=row.note,
        created_at=_aware(row.created_at),
    )


def _to_release(row: LibraryVersion) -> LibraryRelease:
    return LibraryRelease(
        id=row.id,
        project_id=row.project_id,
        version=row.version,
        bump_type=BumpType(row.bump_type),
        published_by=row.published_by,
        published_at=_aware(row.published_at),
        changelog_message=row.changelog_message,
    )


class SqlVersionStore:
    """VersionStore on top of an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, version_id: str) -> ComponentVersion | None:
        async with self.session_factory() as db:
            record = await db.get(ComponentVersionRecord, version_id)
            return _to_version(record) if record else None

    async def save(
        self,
        versions: Sequence[ComponentVersion],
        audit_entries: Sequence[AuditEntry],
    ) -> None:
        async with self.session_factory() as db, db.begin():
            for version in versions:
                await db.merge(_to_record(version))
            await db.flush()
            for entry in audit_entries:
                db.add(AuditLog(
                    component_version_id=entry.component_version_id,
                    action=entry.action.value,
                    performed_by=entry.performed_by,
                    note=entry.note,
                    created_at=entry.created_at,
                ))

    async def _versions(self, *criteria, newest_first: bool = True) -> list[ComponentVersion]:
        order = ComponentVersionRecord.created_at.desc() if newest_first else ComponentVersionRecord.created_at
        async with self.session_factory() as db:
            result = await db.execute(select(ComponentVersionRecord).where(*criteria).order_by(order))
            return [_to_version(r) for r in result.scalars().all()]

    async def current_published(self, project_id: str, component_key: str) -> ComponentVersion | None:
        found = await self._versions(
            ComponentVersionRecord.project_id == project_id,
            ComponentVersionRecord.component_key == component_key,
            ComponentVersionRecord.status == VersionStatus.PUBLISHED.value,
        )
        if len(found) > 1:
            logger.error("Component %s has %d published versions", component_key, len(found))
        return found[0] if found else None

    async def active_version(self, project_id: str, component_key: str) -> ComponentVersion | None:
        found = await self._versions(
            ComponentVersionRecord.project_id == project_id,
            ComponentVersionRecord.component_key == component_key,
            ComponentVersionRecord.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        return found[0] if found else None

    async def history(self, project_id: str, component_key: str) -> list[ComponentVersion]:
        return await self._versions(
            ComponentVersionRecord.project_id == project_id,
            ComponentVersionRecord.component_key == component_key,
        )

    async def project_versions(self, project_id: str) -> list[ComponentVersion]:
        return await self._versions(ComponentVersionRecord.project_id == project_id)

    async def audit_trail(self, version_id: str) -> list[AuditEntry]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(AuditLog)
                .where(AuditLog.component_version_id == version_id)
                .order_by(AuditLog.id)
            )
            return [_to_entry(r) for r in result.scalars().all()]

    async def published_versions(self, project_id: str) -> list[ComponentVersion]:
        versions = await self._versions(
            ComponentVersionRecord.project_id == project_id,
            ComponentVersionRecord.status == VersionStatus.PUBLISHED.value,
            newest_first=False,
        )
        return sorted(versions, key=lambda v: (v.component_name, v.component_key))

    async def delete_draft(self, version_id: str) -> None:
        async with self.session_factory() as db, db.begin():
            await db.execute(delete(AuditLog).where(AuditLog.component_version_id == version_id))
            await db.execute(delete(ComponentVersionRecord).where(ComponentVersionRecord.id == version_id))

    async def latest_release(self, project_id: str) -> LibraryRelease | None:
        history = await self.release_history(project_id)
        return history[0] if history else None

    async def release_history(self, project_id: str) -> list[LibraryRelease]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(LibraryVersion)
                .where(LibraryVersion.project_id == project_id)
                .order_by(LibraryVersion.published_at.desc())
            )
            return [_to_release(r) for r in result.scalars().all()]

    async def release_members(self, release_id: str) -> list[ReleaseMember]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(LibraryVersionComponent)
                .where(LibraryVersionComponent.library_version_id == release_id)
                .order_by(LibraryVersionComponent.component_name)
            )
            return [
                ReleaseMember(
                    library_version_id=r.library_version_id,
                    component_version_id=r.component_version_id,
                    component_key=r.component_key,
                    component_name=r.component_name,
                )
                for r in result.scalars().all()
            ]

    async def save_release(self, release: LibraryRelease, members: Sequence[ReleaseMember]) -> None:
        async with self.session_factory() as db, db.begin():
            db.add(LibraryVersion(
                id=release.id,
                project_id=release.project_id,
                version=release.version,
                bump_type=release.bump_type.value,
                changelog_message=release.changelog_message,
                published_by=release.published_by,
                published_at=release.published_at,
            ))
            await db.flush()
            for member in members:
                db.add(LibraryVersionComponent(
                    library_version_id=member.library_version_id,
                    component_version_id=member.component_version_id,
                    component_key=member.component_key,
                    component_name=member.component_name,
                ))
