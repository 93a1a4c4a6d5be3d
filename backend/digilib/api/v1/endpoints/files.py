from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
import mimetypes

from digilib.core.backend import Backend, get_backend, get_db
from digilib.core.exceptions import StoredFileNotFoundError
from digilib.models.user import UserProfile
from digilib.modules.auth.dependencies import get_optional_current_user
from digilib.services.storage_service import LocalObjectStore, normalize_path


router = APIRouter()


@router.get("/{path:path}")
async def get_file(
    path: str,
    db: AsyncSession = Depends(get_db),
    backend: Backend = Depends(get_backend),
    current_user: Optional[UserProfile] = Depends(get_optional_current_user)
):
    """
    Serve a document from the local object store.

    Files of pending materials are only served to admins, the same as the
    item viewer.
    """
    store = backend.object_store
    if not isinstance(store, LocalObjectStore):
        # S3 / MinIO URLs point at the bucket directly
        raise StoredFileNotFoundError(path)

    try:
        object_path = normalize_path(path)
    except ValueError:
        raise StoredFileNotFoundError(path)

    material = await backend.repository.get_by_file_path(db, object_path)
    is_admin = current_user is not None and current_user.is_admin
    if material is None or not (material.approved or is_admin):
        raise StoredFileNotFoundError(path)

    target = store.open_path(object_path)
    media_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
    return FileResponse(
        target,
        media_type=media_type,
        headers={"Content-Disposition": f'inline; filename="{target.name}"'},
    )
