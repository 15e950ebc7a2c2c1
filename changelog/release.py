"""Library releases: bundle the published component versions into one release."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from changelog.classifier import next_version
from changelog.differ import BumpType
from changelog.models import ComponentVersion, LibraryRelease, ReleaseMember, new_id, utcnow
from changelog.store import VersionStore

logger = logging.getLogger(__name__)

_CHANGE_ORDER = {"added": 0, "updated": 1, "removed": 2}


@dataclass
class ReleaseChange:
    component_key: str
    component_name: str
    change_type: str            # added, updated, removed
    from_version: str | None = None
    to_version: str | None = None
    bump_type: str | None = None
    changelog_message: str | None = None


def compute_release_changelog(
    previous_members: Sequence[ReleaseMember],
    current_published: Sequence[ComponentVersion],
    previous_versions: dict[str, ComponentVersion] | None = None,
) -> list[ReleaseChange]:
    """Compare a release's membership with the currently published versions.

    ``previous_versions`` maps component version ids of the previous release
    to their records so ``from_version`` can be filled in.
    """
    previous_versions = previous_versions or {}
    prev_by_key = {m.component_key: m for m in previous_members}
    current_keys = {v.component_key for v in current_published}
    changes: list[ReleaseChange] = []

    for version in current_published:
        prev = prev_by_key.get(version.component_key)
        if prev is not None and prev.component_version_id == version.id:
            continue
        old = previous_versions.get(prev.component_version_id) if prev else None
        changes.append(ReleaseChange(
            component_key=version.component_key,
            component_name=version.component_name,
            change_type="added" if prev is None else "updated",
            from_version=old.version if old else None,
            to_version=version.version,
            bump_type=version.bump_type.value if version.bump_type else None,
            changelog_message=version.changelog_message,
        ))

    for prev in previous_members:
        if prev.component_key not in current_keys:
            old = previous_versions.get(prev.component_version_id)
            changes.append(ReleaseChange(
                component_key=prev.component_key,
                component_name=prev.component_name,
                change_type="removed",
                from_version=old.version if old else None,
            ))

    changes.sort(key=lambda c: (_CHANGE_ORDER[c.change_type], c.component_name, c.component_key))
    return changes


class LibraryReleases:
    """Computes pending changelogs and publishes library releases."""

    def __init__(self, store: VersionStore):
        self.store = store

    async def _previous_versions(self, members: Sequence[ReleaseMember]) -> dict[str, ComponentVersion]:
        found = {}
        for member in members:
            version = await self.store.get(member.component_version_id)
            if version is not None:
                found[version.id] = version
        return found

    async def pending_changelog(self, project_id: str) -> list[ReleaseChange]:
        """Changes since the latest release (everything is added before the first)."""
        latest = await self.store.latest_release(project_id)
        members = await self.store.release_members(latest.id) if latest else []
        current = await self.store.published_versions(project_id)
        return compute_release_changelog(members, current, await self._previous_versions(members))

    async def release_changelog(self, project_id: str, release_id: str) -> list[ReleaseChange]:
        """Changelog of a past release against its predecessor."""
        history = await self.store.release_history(project_id)
        ids = [r.id for r in history]
        if release_id not in ids:
            return []
        idx = ids.index(release_id)
        members = await self.store.release_members(release_id)
        prev_members = await self.store.release_members(ids[idx + 1]) if idx + 1 < len(ids) else []
        snapshot_versions = list((await self._previous_versions(members)).values())
        return compute_release_changelog(
            prev_members, snapshot_versions, await self._previous_versions(prev_members),
        )

    async def publish(
        self,
        project_id: str,
        bump: BumpType | str,
        published_by: str,
        message: str | None = None,
    ) -> LibraryRelease:
        latest = await self.store.latest_release(project_id)
        release = LibraryRelease(
            id=new_id(),
            project_id=project_id,
            version=next_version(latest.version if latest else "0.0.0", bump),
            bump_type=BumpType(bump),
            published_by=published_by,
            published_at=utcnow(),
            changelog_message=message or None,
        )
        members = [
            ReleaseMember(
                library_version_id=release.id,
                component_version_id=v.id,
                component_key=v.component_key,
                component_name=v.component_name,
            )
            for v in await self.store.published_versions(project_id)
        ]
        await self.store.save_release(release, members)
        logger.info(
            "Library release %s published for project %s with %d component(s)",
            release.version, project_id, len(members),
        )
        return release
