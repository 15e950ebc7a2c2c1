"""Persistence contract for versions, audit entries and releases.

``InMemoryVersionStore`` keeps an arena of immutable records indexed by id
plus a current-published pointer per component; history is never rewritten,
only superseded.
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import replace
from typing import Protocol

from changelog.models import (
    ACTIVE_STATUSES,
    AuditEntry,
    ComponentVersion,
    LibraryRelease,
    ReleaseMember,
    VersionStatus,
)


class VersionStore(Protocol):
    async def get(self, version_id: str) -> ComponentVersion | None: ...

    async def save(
        self,
        versions: Sequence[ComponentVersion],
        audit_entries: Sequence[AuditEntry],
    ) -> None:
        """Insert or update version rows and append audit entries atomically."""
        ...

    async def current_published(self, project_id: str, component_key: str) -> ComponentVersion | None: ...

    async def active_version(self, project_id: str, component_key: str) -> ComponentVersion | None: ...

    async def history(self, project_id: str, component_key: str) -> list[ComponentVersion]:
        """All versions of a component, newest first."""
        ...

    async def project_versions(self, project_id: str) -> list[ComponentVersion]:
        """Every version in a project, newest first."""
        ...

    async def audit_trail(self, version_id: str) -> list[AuditEntry]:
        """Audit entries of a version, oldest first."""
        ...

    async def published_versions(self, project_id: str) -> list[ComponentVersion]: ...

    async def delete_draft(self, version_id: str) -> None: ...

    async def latest_release(self, project_id: str) -> LibraryRelease | None: ...

    async def release_history(self, project_id: str) -> list[LibraryRelease]: ...

    async def release_members(self, release_id: str) -> list[ReleaseMember]: ...

    async def save_release(self, release: LibraryRelease, members: Sequence[ReleaseMember]) -> None: ...


class InMemoryVersionStore:
    """VersionStore backed by process memory."""

    def __init__(self):
        self._versions: dict[str, ComponentVersion] = {}
        self._order: list[str] = []
        self._audit: dict[str, list[AuditEntry]] = {}
        self._current: dict[tuple[str, str], str] = {}
        self._audit_ids = itertools.count(1)
        self._releases: list[LibraryRelease] = []
        self._members: dict[str, list[ReleaseMember]] = {}

    async def get(self, version_id: str) -> ComponentVersion | None:
        return self._versions.get(version_id)

    async def save(
        self,
        versions: Sequence[ComponentVersion],
        audit_entries: Sequence[AuditEntry],
    ) -> None:
        for version in versions:
            if version.id not in self._versions:
                self._order.append(version.id)
            self._versions[version.id] = version
            pointer = (version.project_id, version.component_key)
            if version.status == VersionStatus.PUBLISHED:
                self._current[pointer] = version.id
            elif self._current.get(pointer) == version.id:
                del self._current[pointer]
        for entry in audit_entries:
            stored = replace(entry, id=next(self._audit_ids))
            self._audit.setdefault(entry.component_version_id, []).append(stored)

    async def current_published(self, project_id: str, component_key: str) -> ComponentVersion | None:
        version_id = self._current.get((project_id, component_key))
        return self._versions.get(version_id) if version_id else None

    async def active_version(self, project_id: str, component_key: str) -> ComponentVersion | None:
        for version in await self.history(project_id, component_key):
            if version.status in ACTIVE_STATUSES:
                return version
        return None

    async def history(self, project_id: str, component_key: str) -> list[ComponentVersion]:
        return [
            self._versions[vid] for vid in reversed(self._order)
            if self._versions[vid].project_id == project_id
            and self._versions[vid].component_key == component_key
        ]

    async def project_versions(self, project_id: str) -> list[ComponentVersion]:
        return [self._versions[vid] for vid in reversed(self._order) if self._versions[vid].project_id == project_id]

    async def audit_trail(self, version_id: str) -> list[AuditEntry]:
        return list(self._audit.get(version_id, []))

    async def published_versions(self, project_id: str) -> list[ComponentVersion]:
        return [
            self._versions[vid] for (pid, _), vid in self._current.items()
            if pid == project_id
        ]

    async def delete_draft(self, version_id: str) -> None:
        self._versions.pop(version_id, None)
        self._audit.pop(version_id, None)
        if version_id in self._order:
            self._order.remove(version_id)

    async def latest_release(self, project_id: str) -> LibraryRelease | None:
        history = await self.release_history(project_id)
        return history[0] if history else None

    async def release_history(self, project_id: str) -> list[LibraryRelease]:
        return [r for r in reversed(self._releases) if r.project_id == project_id]

    async def release_members(self, release_id: str) -> list[ReleaseMember]:
        return list(self._members.get(release_id, []))

    async def save_release(self, release: LibraryRelease, members: Sequence[ReleaseMember]) -> None:
        self._releases.append(release)
        self._members[release.id] = list(members)
