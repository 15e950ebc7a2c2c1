"""Library endpoints: pending changelog and library releases."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from changelog.release import LibraryReleases
from registry.database import get_db
from registry.deps import get_releases
from registry.entities.project import Project
from registry.schemas.library import ReleaseChangeResponse, ReleaseCreate, ReleaseResponse

router = APIRouter(prefix="/projects/{project_id}/library", tags=["library"])


async def _require_project(project_id: str, db: AsyncSession) -> None:
    if await db.get(Project, project_id) is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")


@router.get("/changelog", response_model=list[ReleaseChangeResponse])
async def pending_changelog(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    releases: LibraryReleases = Depends(get_releases),
):
    """Changes the next library release would contain."""
    await _require_project(project_id, db)
    return await releases.pending_changelog(project_id)


@router.post("/releases", response_model=ReleaseResponse, status_code=201)
async def publish_release(
    project_id: str,
    body: ReleaseCreate,
    db: AsyncSession = Depends(get_db),
    releases: LibraryReleases = Depends(get_releases),
):
    await _require_project(project_id, db)
    changes = await releases.pending_changelog(project_id)
    release = await releases.publish(project_id, body.bump_type, body.published_by, body.changelog_message)
    return ReleaseResponse(**asdict(release), changes=[ReleaseChangeResponse.model_validate(c) for c in changes])


@router.get("/releases", response_model=list[ReleaseResponse])
async def list_releases(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    releases: LibraryReleases = Depends(get_releases),
):
    """Library releases, newest first, each with its changelog."""
    await _require_project(project_id, db)
    result = []
    for release in await releases.store.release_history(project_id):
        changes = await releases.release_changelog(project_id, release.id)
        result.append(ReleaseResponse(
            **asdict(release),
            changes=[ReleaseChangeResponse.model_validate(c) for c in changes],
        ))
    return result
