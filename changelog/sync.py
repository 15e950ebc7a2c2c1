"""Record a finished extraction against a project's version history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

import httpx

from changelog.errors import InvalidTransition
from changelog.lifecycle import VersionLifecycle
from changelog.library_client import LibraryClient
from changelog.messages import ExtractedComponent
from changelog.models import ComponentVersion
from changelog.snapshot import Snapshot

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    created: list[ComponentVersion] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    conflicts: dict[str, str] = field(default_factory=dict)


async def _library_copy(
    library: LibraryClient, file_key: str, component: ExtractedComponent,
) -> Snapshot | None:
    try:
        return await library.get_component_snapshot(file_key, component.node_id, component.key)
    except httpx.HTTPError as exc:
        logger.warning("Library copy of %s unavailable, versioning it as new: %s", component.name, exc)
        return None


async def record_extracted(
    lifecycle: VersionLifecycle,
    project_id: str,
    components: Iterable[ExtractedComponent],
    created_by: str,
    *,
    library: LibraryClient | None = None,
    library_file_key: str | None = None,
) -> SyncResult:
    """Create drafts for every extracted component that changed.

    With a ``library``, components that have no local history are compared
    against the library's published copy first so an unchanged component is
    not versioned. A component whose in-flight version differs from the new
    snapshot is reported as a conflict and skipped.
    """
    result = SyncResult()
    for component in components:
        snapshot = Snapshot.from_extracted(component.snapshot_payload())

        known = {v.id for v in await lifecycle.history(project_id, component.key)}
        remote = None
        if not known and library is not None and library_file_key:
            remote = await _library_copy(library, library_file_key, component)

        try:
            version = await lifecycle.record_snapshot(
                project_id, snapshot, component.name, created_by, remote_previous=remote,
            )
        except InvalidTransition as exc:
            logger.warning("Skipped %s (%s): %s", component.name, component.key, exc)
            result.conflicts[component.key] = str(exc)
            continue

        if version is None or version.id in known:
            result.unchanged.append(component.key)
        else:
            result.created.append(version)

    logger.info(
        "Synced %s: %d new version(s), %d unchanged, %d conflict(s)",
        project_id, len(result.created), len(result.unchanged), len(result.conflicts),
    )
    return result
