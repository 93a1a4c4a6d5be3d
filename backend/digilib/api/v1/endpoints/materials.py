"""
Material endpoints - upload form and item viewer
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from digilib.core.backend import Backend, get_backend, get_db
from digilib.core.exceptions import MaterialNotFoundError
from digilib.core.logging_config import logger
from digilib.models.user import UserProfile
from digilib.modules.auth.dependencies import actor_for, get_current_user, get_optional_current_user
from digilib.schemas.material import MaterialResponse, SubmitResponse
from digilib.services.lifecycle import MaterialLifecycle, UploadedFile


router = APIRouter()


def get_lifecycle(backend: Backend = Depends(get_backend)) -> MaterialLifecycle:
    return MaterialLifecycle(backend)


@router.post("", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_material(
    title: str = Form(""),
    description: str = Form(""),
    type: str = Form(""),
    category: str = Form(""),
    subject: Optional[str] = Form(None),
    semester: Optional[str] = Form(None),
    tags: str = Form(""),
    file: Optional[UploadFile] = File(None),
    current_user: UserProfile = Depends(get_current_user),
    lifecycle: MaterialLifecycle = Depends(get_lifecycle)
):
    """
    Submit a document with its metadata.

    The material starts pending and appears in the catalog once an admin
    approves it.
    """
    metadata = {
        "title": title,
        "description": description,
        "type": type,
        "category": category,
        "subject": subject,
        "semester": semester,
        "tags": tags,
    }

    upload = None
    if file is not None:
        upload = UploadedFile(
            filename=file.filename or "document.pdf",
            content_type=file.content_type or "",
            content=await file.read(),
        )

    def _progress(transferred: int, total: int) -> None:
        logger.debug(f"[Upload] {transferred}/{total} bytes")

    material = await lifecycle.submit(metadata, upload, actor_for(current_user), progress=_progress)

    return SubmitResponse(
        material=MaterialResponse.from_material(material),
        message="Material submitted for review. It will appear in the library once approved.",
    )


@router.get("/{material_id}", response_model=MaterialResponse)
async def get_material(
    material_id: str,
    db: AsyncSession = Depends(get_db),
    backend: Backend = Depends(get_backend),
    current_user: Optional[UserProfile] = Depends(get_optional_current_user)
):
    """Item viewer. Pending materials are only visible to admins."""
    material = await backend.repository.get(db, material_id)
    if material is None:
        raise MaterialNotFoundError(material_id)
    if not material.approved and not (current_user and current_user.is_admin):
        raise MaterialNotFoundError(material_id)
    return MaterialResponse.from_material(material)
