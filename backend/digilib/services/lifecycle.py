"""
Material Lifecycle - submission and moderation state machine

    (none) --submit--> Pending --approve--> Published
    Pending --reject--> Removed
    Pending | Published --delete--> Removed

Removed is terminal: the metadata row is deleted first, then the backing
file. A delete that commits before a concurrent approve always wins, because
approve is a conditional UPDATE that fails when the row is gone. Reject is a
DELETE conditional on the row still being pending.

Usage:
    lifecycle = MaterialLifecycle(backend)
    material = await lifecycle.submit(metadata, upload, actor)
    await lifecycle.approve(material.id, admin)
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from digilib.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidFileError,
    InvalidStateError,
    MaterialNotFoundError,
    StorageError,
    ValidationError,
)
from digilib.core.logging_config import logger
from digilib.models import Material, MaterialState, UserProfile, UserRole
from digilib.schemas.material import MaterialCreate
from digilib.services.material_repository import MaterialRepository, backend_errors
from digilib.services.storage_service import ProgressCallback, build_material_path


PDF_SIGNATURE = b"%PDF-"

REMOVAL_AUDIT_ACTIONS = {"reject": "material_rejected", "delete": "material_deleted"}
REMOVAL_EVENTS = {"reject": "rejected", "delete": "deleted"}


@dataclass
class Actor:
    """The authenticated identity performing an action"""
    id: str
    role: UserRole = UserRole.USER
    name: str = ""
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "Actor":
        return cls(id=str(profile.id), role=profile.role, name=profile.name, email=profile.email)


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    content: bytes


def metadata_from_input(data: Union[MaterialCreate, Dict[str, Any]]) -> MaterialCreate:
    """Validate raw submission metadata, raising ValidationError naming the offending field"""
    if isinstance(data, MaterialCreate):
        return data
    try:
        return MaterialCreate.model_validate(data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error.get("loc") else None
        message = error.get("msg", "Invalid material metadata")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        if field is None and "missing:" in message:
            field = message.rsplit("missing:", 1)[1].strip(" )").split(",")[0].strip()
        raise ValidationError(message, field=field)


def validate_upload(upload: Optional[UploadedFile], allowed_types: List[str], max_size: int) -> str:
    """Check an uploaded document, returning its normalized content type"""
    if upload is None:
        raise InvalidFileError("A document file is required")

    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type not in allowed_types:
        raise InvalidFileError(
            f"Unsupported file type '{content_type or 'unknown'}'",
            content_type=content_type,
            allowed_types=allowed_types,
        )
    if not upload.content:
        raise InvalidFileError("Uploaded file is empty", content_type=content_type)
    if len(upload.content) > max_size:
        raise InvalidFileError(
            f"File too large. Maximum size: {max_size // (1024 * 1024)}MB",
            content_type=content_type,
        )
    if content_type == "application/pdf" and not upload.content.startswith(PDF_SIGNATURE):
        raise InvalidFileError("File content is not a PDF document", content_type=content_type)
    return content_type


def _log_orphaned_upload(path: str, record: "asyncio.Future") -> None:
    """Done-callback of the metadata write; runs even when the request was abandoned"""
    if record.cancelled() or record.exception() is None:
        return
    logger.warning(
        f"[Submit] Metadata insert failed, leaving orphaned file {path}: {record.exception()}",
        extra={"event_type": "orphaned_upload", "object_path": path}
    )


class MaterialLifecycle:
    """Submit / Approve / Reject / Delete over the repository and object store"""

    def __init__(self, backend):
        self.settings = backend.settings
        self.session_factory = backend.session_factory
        self.object_store = backend.object_store
        self.repository: MaterialRepository = backend.repository
        self.change_feed = backend.change_feed

    # ==================== HELPERS ====================

    @staticmethod
    def _require_actor(actor: Optional[Actor]) -> Actor:
        if actor is None or not actor.id:
            raise AuthenticationError("Sign in to perform this action")
        return actor

    @classmethod
    def _require_admin(cls, actor: Optional[Actor], action: str) -> Actor:
        actor = cls._require_actor(actor)
        if not actor.is_admin:
            logger.warning(f"[Moderation] {actor.id} attempted {action} without admin role")
            raise AuthorizationError(f"Admin role required to {action} materials", required_role=UserRole.ADMIN.value)
        return actor

    # ==================== SUBMIT ====================

    async def submit(
        self,
        metadata: Union[MaterialCreate, Dict[str, Any]],
        upload: Optional[UploadedFile],
        actor: Optional[Actor],
        progress: Optional[ProgressCallback] = None
    ) -> Material:
        """
        Submit a new material for moderation.

        Metadata is validated before the file, and nothing is stored unless
        both pass. The file is uploaded first and the metadata row written
        afterwards with the returned URL. The insert is shielded so it still
        completes when the requesting client goes away mid-flight.
        """
        actor = self._require_actor(actor)
        data = metadata_from_input(metadata)
        content_type = validate_upload(upload, self.settings.ALLOWED_CONTENT_TYPES, self.settings.MAX_UPLOAD_SIZE)

        path = build_material_path(upload.filename)
        stored = await self.object_store.upload(path, upload.content, content_type, progress=progress)

        fields = {
            "title": data.title,
            "description": data.description,
            "type": data.type,
            "category": data.category,
            "subject": data.subject,
            "semester": data.semester,
            "tags": data.tags,
            "file_url": stored.url,
            "file_path": stored.path,
            "uploaded_by": actor.id,
            "approved": False,
        }

        record = asyncio.ensure_future(self._record_submission(fields))
        record.add_done_callback(functools.partial(_log_orphaned_upload, stored.path))
        try:
            material = await asyncio.shield(record)
        except asyncio.CancelledError:
            logger.warning(f"[Submit] Request abandoned after upload of {stored.path}; metadata write continues")
            raise

        logger.log_moderation_event("submitted", material.id, actor.id, category=material.category.value)
        return material

    async def _record_submission(self, fields: Dict[str, Any]) -> Material:
        async with self.session_factory() as db:
            material = await self.repository.insert(db, **fields)
            with backend_errors("submit commit"):
                await db.commit()
        self.change_feed.publish(None, material.to_dict())
        return material

    # ==================== APPROVE ====================

    async def approve(self, material_id: str, actor: Optional[Actor]) -> Material:
        """
        Publish a pending material. Approving a published material is a no-op.
        """
        actor = self._require_admin(actor, "approve")

        async with self.session_factory() as db:
            material = await self.repository.get(db, material_id)
            if material is None:
                raise MaterialNotFoundError(material_id)
            if material.approved:
                logger.info(f"[Moderation] Material {material_id} already published")
                return material

            before = material.to_dict()
            updated = await self.repository.mark_approved(db, material_id)
            if updated == 0:
                await db.rollback()
                raise MaterialNotFoundError(material_id)
            material.approved = True

            await self.repository.log_admin_action(
                db, actor.id, "material_approved", "material", material_id,
                details={"title": material.title}
            )
            with backend_errors("approve commit"):
                await db.commit()

        self.change_feed.publish(before, material.to_dict())
        logger.log_moderation_event("approved", material_id, actor.id)
        return material

    # ==================== REJECT / DELETE ====================

    async def reject(self, material_id: str, actor: Optional[Actor]) -> None:
        """Remove a pending material. Published materials must be deleted instead."""
        actor = self._require_admin(actor, "reject")
        await self._remove(material_id, actor, action="reject")

    async def delete(self, material_id: str, actor: Optional[Actor]) -> None:
        """Remove a pending or published material"""
        actor = self._require_admin(actor, "delete")
        await self._remove(material_id, actor, action="delete")

    async def _remove(self, material_id: str, actor: Actor, action: str) -> None:
        async with self.session_factory() as db:
            material = await self.repository.get(db, material_id)
            if material is None:
                raise MaterialNotFoundError(material_id)
            if action == "reject" and material.approved:
                raise InvalidStateError(material_id, MaterialState.PUBLISHED.value, action)

            before = material.to_dict()
            file_path = material.file_path

            # Reject only removes the row while it is still pending
            removed = await self.repository.delete(
                db, material_id, approved=False if action == "reject" else None
            )
            if removed == 0:
                await db.rollback()
                if await self.repository.get(db, material_id) is not None:
                    raise InvalidStateError(material_id, MaterialState.PUBLISHED.value, action)
                raise MaterialNotFoundError(material_id)

            await self.repository.log_admin_action(
                db, actor.id, REMOVAL_AUDIT_ACTIONS[action],
                "material", material_id,
                details={"title": before["title"], "status": before["status"], "file_path": file_path}
            )
            with backend_errors(f"{action} commit"):
                await db.commit()

        self.change_feed.publish(before, None)
        logger.log_moderation_event(REMOVAL_EVENTS[action], material_id, actor.id)

        await self._delete_backing_file(material_id, file_path)

    async def _delete_backing_file(self, material_id: str, file_path: Optional[str]) -> None:
        """Delete the stored document after its row is gone; failures are logged for reconciliation"""
        if not file_path:
            return  # external link, nothing stored

        try:
            deleted = await self.object_store.delete(file_path)
        except StorageError as e:
            logger.error(
                f"[Storage] Could not delete {file_path} for removed material {material_id}: {e}",
                extra={
                    "event_type": "storage_reconciliation",
                    "object_path": file_path,
                    "material_id": material_id,
                }
            )
            return

        if not deleted:
            logger.warning(f"[Storage] Backing file {file_path} for material {material_id} was already gone")
