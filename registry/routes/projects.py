"""Project endpoints: register design files and record extracted snapshots."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from changelog.library_client import LibraryClient
from changelog.lifecycle import VersionLifecycle
from changelog.models import new_id
from changelog.snapshot import Snapshot
from changelog.sync import record_extracted
from registry.database import get_db
from registry.deps import get_lifecycle
from registry.entities.project import Project
from registry.schemas.projects import ProjectCreate, ProjectResponse
from registry.schemas.versions import (
    ComponentVersionsResponse,
    RecordSnapshotRequest,
    RecordSnapshotResponse,
    SyncRequest,
    SyncResponse,
    VersionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


async def _require_project(project_id: str, db: AsyncSession) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return project


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(body: ProjectCreate, response: Response, db: AsyncSession = Depends(get_db)):
    """Register a design file, or return the project already tracking it.

    Projects are matched on file key; the oldest match wins and the reply is 200.
    """
    if body.figma_file_key:
        result = await db.execute(
            select(Project)
            .where(Project.figma_file_key == body.figma_file_key)
            .order_by(Project.created_at)
            .limit(1)
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            response.status_code = 200
            return existing
    project = Project(id=new_id(), name=body.name, figma_file_key=body.figma_file_key)
    db.add(project)
    await db.commit()
    await db.refresh(project)
    logger.info("Project %s created (%s)", project.id, project.name)
    return project


@router.get("", response_model=list[ProjectResponse])
async def list_projects(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Project).order_by(Project.name))
    return result.scalars().all()


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, db: AsyncSession = Depends(get_db)):
    return await _require_project(project_id, db)


@router.post("/{project_id}/versions", response_model=RecordSnapshotResponse)
async def record_snapshot(
    project_id: str,
    body: RecordSnapshotRequest,
    db: AsyncSession = Depends(get_db),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    """Create a draft from an extracted snapshot; unchanged components get no version."""
    await _require_project(project_id, db)
    snapshot = Snapshot.from_extracted(body.snapshot)
    if not snapshot.component_key:
        raise HTTPException(status_code=422, detail="Snapshot has no component key")
    version = await lifecycle.record_snapshot(
        project_id, snapshot, body.component_name, body.created_by,
        thumbnail_url=body.thumbnail_url,
        remote_previous=Snapshot.from_extracted(body.library_snapshot) if body.library_snapshot else None,
    )
    if version is None:
        return RecordSnapshotResponse(created=False)
    return RecordSnapshotResponse(created=True, version=VersionResponse.from_domain(version))


@router.get("/{project_id}/components/{component_key}/versions", response_model=list[VersionResponse])
async def component_history(
    project_id: str,
    component_key: str,
    db: AsyncSession = Depends(get_db),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    """All versions of a component, newest first."""
    await _require_project(project_id, db)
    return [VersionResponse.from_domain(v) for v in await lifecycle.history(project_id, component_key)]


@router.get("/{project_id}/components", response_model=list[ComponentVersionsResponse])
async def component_versions(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    """Published and in-flight version of every component in the project."""
    await _require_project(project_id, db)
    return [ComponentVersionsResponse.from_domain(m) for m in await lifecycle.version_maps(project_id)]


@router.post("/{project_id}/sync", response_model=SyncResponse)
async def sync_components(
    project_id: str,
    body: SyncRequest,
    db: AsyncSession = Depends(get_db),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    """Record a finished extraction; each changed component gets a draft."""
    project = await _require_project(project_id, db)
    if not body.seed_from_library:
        result = await record_extracted(lifecycle, project_id, body.components, body.created_by)
    else:
        file_key = body.library_file_key or project.figma_file_key
        if not file_key:
            raise HTTPException(status_code=422, detail="No library file key to seed from")
        try:
            library = LibraryClient()
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        async with library:
            result = await record_extracted(
                lifecycle, project_id, body.components, body.created_by,
                library=library, library_file_key=file_key,
            )
    return SyncResponse(
        created=[VersionResponse.from_domain(v) for v in result.created],
        unchanged=result.unchanged,
        conflicts=result.conflicts,
    )
