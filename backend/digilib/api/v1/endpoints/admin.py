"""
Admin endpoints - moderation queue, library management and seeding.
All endpoints require the admin role.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from digilib.core.backend import Backend, get_backend, get_db
from digilib.models.user import UserProfile
from digilib.modules.auth.dependencies import actor_for, get_current_admin
from digilib.schemas.material import MaterialResponse
from digilib.services.lifecycle import MaterialLifecycle
from digilib.services.seeder import LibrarySeeder
from digilib.api.v1.endpoints.materials import get_lifecycle


router = APIRouter()


@router.get("/materials/pending")
async def list_pending(
    db: AsyncSession = Depends(get_db),
    backend: Backend = Depends(get_backend),
    current_admin: UserProfile = Depends(get_current_admin)
):
    """Pending moderation queue, newest first"""
    items = await backend.repository.scan_approved(db, approved=False)
    return {
        "items": [MaterialResponse.from_material(m) for m in items],
        "total": len(items),
    }


@router.get("/materials/approved")
async def list_approved(
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    backend: Backend = Depends(get_backend),
    current_admin: UserProfile = Depends(get_current_admin)
):
    """Most recent published materials for the manage-library view"""
    limit = limit or backend.settings.ADMIN_APPROVED_LIST_LIMIT
    items = await backend.repository.scan_approved(db, approved=True, limit=limit)
    return {
        "items": [MaterialResponse.from_material(m) for m in items],
        "total": len(items),
        "limit": limit,
    }


@router.post("/materials/{material_id}/approve", response_model=MaterialResponse)
async def approve_material(
    material_id: str,
    current_admin: UserProfile = Depends(get_current_admin),
    lifecycle: MaterialLifecycle = Depends(get_lifecycle)
):
    """Publish a pending material"""
    material = await lifecycle.approve(material_id, actor_for(current_admin))
    return MaterialResponse.from_material(material)


@router.post("/materials/{material_id}/reject")
async def reject_material(
    material_id: str,
    current_admin: UserProfile = Depends(get_current_admin),
    lifecycle: MaterialLifecycle = Depends(get_lifecycle)
):
    """Remove a pending material and its file"""
    await lifecycle.reject(material_id, actor_for(current_admin))
    return {"success": True, "message": "Material rejected", "material_id": material_id}


@router.delete("/materials/{material_id}")
async def delete_material(
    material_id: str,
    current_admin: UserProfile = Depends(get_current_admin),
    lifecycle: MaterialLifecycle = Depends(get_lifecycle)
):
    """Remove a pending or published material and its file"""
    await lifecycle.delete(material_id, actor_for(current_admin))
    return {"success": True, "message": "Material deleted", "material_id": material_id}


@router.post("/seed")
async def seed_library(
    force: bool = Query(False),
    backend: Backend = Depends(get_backend),
    current_admin: UserProfile = Depends(get_current_admin)
):
    """Add the sample materials. Existing samples are never duplicated."""
    result = await LibrarySeeder(backend).ensure_seeded(force=force, actor_id=str(current_admin.id))
    return {"success": True, **result.to_dict()}


@router.get("/audit-logs")
async def list_audit_logs(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    backend: Backend = Depends(get_backend),
    current_admin: UserProfile = Depends(get_current_admin)
):
    """Most recent moderation actions"""
    logs = await backend.repository.recent_audit_logs(db, limit=limit)
    return {"items": [log.to_dict() for log in logs], "total": len(logs)}
