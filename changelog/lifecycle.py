"""Version lifecycle: state machine and audit trail for component versions.

    draft -> in_review -> approved -> published -> deprecated
                 |
                 +-> draft (rejected)

``apply_transition`` is pure. ``VersionLifecycle`` drives it against a
``VersionStore`` and serializes writes per component.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import replace
from datetime import datetime

from changelog.classifier import INITIAL_VERSION, next_version
from changelog.differ import diff_snapshots
from changelog.errors import InvalidTransition, VersionNotFound
from changelog.models import (
    ACTIVE_STATUSES,
    AuditAction,
    AuditEntry,
    ComponentVersion,
    ComponentVersionMap,
    VersionStatus,
    new_id,
    utcnow,
)
from changelog.snapshot import Snapshot
from changelog.store import VersionStore

logger = logging.getLogger(__name__)

TRANSITIONS: dict[tuple[VersionStatus, AuditAction], VersionStatus] = {
    (VersionStatus.DRAFT, AuditAction.SUBMITTED_FOR_REVIEW): VersionStatus.IN_REVIEW,
    (VersionStatus.IN_REVIEW, AuditAction.APPROVED): VersionStatus.APPROVED,
    (VersionStatus.IN_REVIEW, AuditAction.REJECTED): VersionStatus.DRAFT,
    (VersionStatus.APPROVED, AuditAction.PUBLISHED): VersionStatus.PUBLISHED,
    (VersionStatus.PUBLISHED, AuditAction.DEPRECATED): VersionStatus.DEPRECATED,
}


def allowed_actions(status: VersionStatus) -> list[AuditAction]:
    return [action for (source, action) in TRANSITIONS if source == status]


def create_version(
    *,
    project_id: str,
    snapshot: Snapshot,
    component_name: str,
    created_by: str,
    previous: ComponentVersion | None = None,
    thumbnail_url: str | None = None,
    now: datetime | None = None,
) -> tuple[ComponentVersion, AuditEntry] | None:
    """The (none) -> draft transition.

    Returns None when ``snapshot`` is structurally identical to ``previous``.
    """
    now = now or utcnow()
    if previous is None:
        diff, bump, version = None, None, INITIAL_VERSION
    else:
        diff = diff_snapshots(previous.snapshot, snapshot)
        if diff.bump is None:
            return None
        bump, version = diff.bump, next_version(previous.version, diff.bump)

    record = ComponentVersion(
        id=new_id(),
        project_id=project_id,
        component_key=snapshot.component_key,
        component_name=component_name,
        version=version,
        status=VersionStatus.DRAFT,
        snapshot=snapshot,
        diff=diff,
        bump_type=bump,
        created_by=created_by,
        created_at=now,
        updated_at=now,
        thumbnail_url=thumbnail_url,
    )
    entry = AuditEntry(
        component_version_id=record.id,
        action=AuditAction.CREATED,
        performed_by=created_by,
        created_at=now,
    )
    return record, entry


def apply_transition(
    version: ComponentVersion,
    action: AuditAction | str,
    actor: str,
    *,
    note: str | None = None,
    now: datetime | None = None,
    version_string: str | None = None,
    superseded_by: str | None = None,
) -> tuple[ComponentVersion, AuditEntry]:
    """Apply one action to a version, returning the new record and its audit entry.

    Raises InvalidTransition for anything not in the transition table; the
    input record is never modified.
    """
    action = AuditAction(action)
    target = TRANSITIONS.get((version.status, action))
    if target is None:
        raise InvalidTransition(version.status.value, action.value)

    now = now or utcnow()
    changes: dict = {"status": target, "updated_at": now}

    if action == AuditAction.SUBMITTED_FOR_REVIEW:
        if version.diff is not None and version.diff.is_empty:
            raise InvalidTransition(version.status.value, action.value, "version has no changes to review")
    elif action == AuditAction.APPROVED:
        if version.reviewed_by is None:
            changes["reviewed_by"] = actor
    elif action == AuditAction.PUBLISHED:
        published_as = version_string or version.version
        changes["version"] = published_as
        changes["published_at"] = now
        changes["changelog_message"] = note
        note = f"Published as {published_as}" + (f": {note}" if note else "")
    elif action == AuditAction.DEPRECATED and superseded_by:
        changes["superseded_by"] = superseded_by

    entry = AuditEntry(
        component_version_id=version.id,
        action=action,
        performed_by=actor,
        created_at=now,
        note=note,
    )
    return replace(version, **changes), entry


class VersionLifecycle:
    """Drives component versions through review and publishing."""

    def __init__(self, store: VersionStore):
        self.store = store
        # Held only while a write is in flight; idle components drop out
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, project_id: str, component_key: str) -> asyncio.Lock:
        key = (project_id, component_key)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def get(self, version_id: str) -> ComponentVersion:
        version = await self.store.get(version_id)
        if version is None:
            raise VersionNotFound(version_id)
        return version

    async def _previous(self, project_id: str, component_key: str) -> ComponentVersion | None:
        """The version new snapshots are diffed against.

        That is the current published version, else the most recently
        published one (all deprecated), else nothing.
        """
        current = await self.store.current_published(project_id, component_key)
        if current is not None:
            return current
        ever_published = [
            v for v in await self.store.history(project_id, component_key)
            if v.published_at is not None
        ]
        if not ever_published:
            return None
        return max(ever_published, key=lambda v: v.published_at)

    async def record_snapshot(
        self,
        project_id: str,
        snapshot: Snapshot,
        component_name: str,
        created_by: str,
        *,
        thumbnail_url: str | None = None,
        remote_previous: Snapshot | None = None,
    ) -> ComponentVersion | None:
        """Create a draft for a freshly extracted snapshot.

        Returns None when nothing changed. ``remote_previous`` is the library's
        copy of a component with no local history; an unchanged component is
        not versioned.
        """
        key = snapshot.component_key
        async with self._lock(project_id, key):
            active = await self.store.active_version(project_id, key)
            if active is not None:
                if active.snapshot == snapshot:
                    return active
                raise InvalidTransition(
                    active.status.value,
                    AuditAction.CREATED.value,
                    f"{active.component_name} already has an active version {active.id}",
                )

            previous = await self._previous(project_id, key)
            history = await self.store.history(project_id, key) if previous is None else None
            if previous is None and not history and remote_previous is not None:
                if diff_snapshots(remote_previous, snapshot).bump is None:
                    logger.info("Component %s matches the library copy, not versioned", key)
                    return None

            created = create_version(
                project_id=project_id,
                snapshot=snapshot,
                component_name=component_name,
                created_by=created_by,
                previous=previous,
                thumbnail_url=thumbnail_url,
            )
            if created is None:
                logger.info("Component %s unchanged since %s", key, previous.version)
                return None

            version, entry = created
            await self.store.save([version], [entry])
            logger.info(
                "Draft %s created for %s (%s, bump=%s)",
                version.id, component_name, version.version,
                version.bump_type.value if version.bump_type else "initial",
            )
            return version

    async def _transition(
        self,
        version_id: str,
        action: AuditAction,
        actor: str,
        note: str | None = None,
    ) -> ComponentVersion:
        version = await self.get(version_id)
        async with self._lock(version.project_id, version.component_key):
            version = await self.get(version_id)
            updated, entry = apply_transition(version, action, actor, note=note)
            await self.store.save([updated], [entry])
        logger.info(
            "Version %s: %s -> %s by %s",
            version_id, version.status.value, updated.status.value, actor,
        )
        return updated

    async def submit(self, version_id: str, actor: str) -> ComponentVersion:
        return await self._transition(version_id, AuditAction.SUBMITTED_FOR_REVIEW, actor)

    async def approve(self, version_id: str, reviewer: str) -> ComponentVersion:
        return await self._transition(version_id, AuditAction.APPROVED, reviewer)

    async def reject(self, version_id: str, reviewer: str, reason: str | None = None) -> ComponentVersion:
        return await self._transition(version_id, AuditAction.REJECTED, reviewer, note=reason)

    async def deprecate(self, version_id: str, actor: str, note: str | None = None) -> ComponentVersion:
        return await self._transition(version_id, AuditAction.DEPRECATED, actor, note=note)

    async def publish(self, version_id: str, actor: str, message: str | None = None) -> ComponentVersion:
        """Publish an approved version and demote the previous current one.

        The version string is re-resolved against the current published
        version at publish time. Both rows and both audit entries are written
        in a single store call.
        """
        version = await self.get(version_id)
        async with self._lock(version.project_id, version.component_key):
            version = await self.get(version_id)
            current = await self.store.current_published(version.project_id, version.component_key)

            version_string = version.version
            if current is not None and version.bump_type is not None:
                version_string = next_version(current.version, version.bump_type)
            history = await self.store.history(version.project_id, version.component_key)
            if any(v.id != version.id and v.published_at and v.version == version_string for v in history):
                raise InvalidTransition(
                    version.status.value,
                    AuditAction.PUBLISHED.value,
                    f"version {version_string} of {version.component_name} already exists",
                )

            now = utcnow()
            published, entry = apply_transition(
                version, AuditAction.PUBLISHED, actor,
                note=message, now=now, version_string=version_string,
            )
            rows, entries = [published], [entry]
            if current is not None and current.id != version.id:
                demoted, demote_entry = apply_transition(
                    current, AuditAction.DEPRECATED, actor,
                    note=f"Superseded by {version_string}",
                    now=now, superseded_by=version.id,
                )
                rows.insert(0, demoted)
                entries.insert(0, demote_entry)

            await self.store.save(rows, entries)

        logger.info(
            "Published %s %s (%s)%s",
            published.component_name, published.version, published.id,
            f", superseding {current.version}" if current is not None else "",
        )
        return published

    async def discard_draft(self, version_id: str) -> None:
        """Delete a never-published draft together with its audit trail."""
        version = await self.get(version_id)
        async with self._lock(version.project_id, version.component_key):
            version = await self.get(version_id)
            if version.status != VersionStatus.DRAFT or version.published_at is not None:
                raise InvalidTransition(version.status.value, "discard", "only unpublished drafts can be discarded")
            await self.store.delete_draft(version_id)
        logger.info("Discarded draft %s of %s", version_id, version.component_name)

    async def history(self, project_id: str, component_key: str) -> list[ComponentVersion]:
        return await self.store.history(project_id, component_key)

    async def audit_trail(self, version_id: str) -> list[AuditEntry]:
        await self.get(version_id)
        return await self.store.audit_trail(version_id)

    async def current_published(self, project_id: str, component_key: str) -> ComponentVersion | None:
        return await self.store.current_published(project_id, component_key)

    async def version_maps(self, project_id: str) -> list[ComponentVersionMap]:
        """Latest published and latest active version of every component in a project.

        Components are listed by name; the name comes from the newest version.
        """
        maps: dict[str, ComponentVersionMap] = {}
        for version in await self.store.project_versions(project_id):
            entry = maps.get(version.component_key)
            if entry is None:
                entry = ComponentVersionMap(version.component_key, version.component_name)
            if entry.published is None and version.status == VersionStatus.PUBLISHED:
                entry = replace(entry, published=version)
            elif entry.active is None and version.status in ACTIVE_STATUSES:
                entry = replace(entry, active=version)
            maps[version.component_key] = entry
        return sorted(maps.values(), key=lambda m: (m.component_name, m.component_key))
