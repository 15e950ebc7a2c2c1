"""Version endpoints: review, publish and audit component versions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from changelog.lifecycle import VersionLifecycle
from registry.deps import get_lifecycle
from registry.schemas.versions import ActionRequest, AuditEntryResponse, VersionResponse

router = APIRouter(prefix="/versions", tags=["versions"])


@router.get("/{version_id}", response_model=VersionResponse)
async def get_version(version_id: str, lifecycle: VersionLifecycle = Depends(get_lifecycle)):
    return VersionResponse.from_domain(await lifecycle.get(version_id))


@router.get("/{version_id}/audit", response_model=list[AuditEntryResponse])
async def get_audit_trail(version_id: str, lifecycle: VersionLifecycle = Depends(get_lifecycle)):
    """Audit entries of a version, oldest first."""
    return [AuditEntryResponse.from_domain(e) for e in await lifecycle.audit_trail(version_id)]


@router.post("/{version_id}/submit", response_model=VersionResponse)
async def submit_version(
    version_id: str, body: ActionRequest, lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    return VersionResponse.from_domain(await lifecycle.submit(version_id, body.actor))


@router.post("/{version_id}/approve", response_model=VersionResponse)
async def approve_version(
    version_id: str, body: ActionRequest, lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    return VersionResponse.from_domain(await lifecycle.approve(version_id, body.actor))


@router.post("/{version_id}/reject", response_model=VersionResponse)
async def reject_version(
    version_id: str, body: ActionRequest, lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    """Send a version under review back to draft; ``note`` is the reason."""
    return VersionResponse.from_domain(await lifecycle.reject(version_id, body.actor, body.note))


@router.post("/{version_id}/publish", response_model=VersionResponse)
async def publish_version(
    version_id: str, body: ActionRequest, lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    """Publish an approved version; ``note`` becomes its changelog message."""
    return VersionResponse.from_domain(await lifecycle.publish(version_id, body.actor, body.note))


@router.post("/{version_id}/deprecate", response_model=VersionResponse)
async def deprecate_version(
    version_id: str, body: ActionRequest, lifecycle: VersionLifecycle = Depends(get_lifecycle),
):
    return VersionResponse.from_domain(await lifecycle.deprecate(version_id, body.actor, body.note))


@router.delete("/{version_id}", status_code=204)
async def discard_draft(version_id: str, lifecycle: VersionLifecycle = Depends(get_lifecycle)):
    """Delete an unpublished draft and its audit trail."""
    await lifecycle.discard_draft(version_id)
    return Response(status_code=204)
