"""
Material Repository - SQLAlchemy access to the materials table

All reads and writes of material metadata go through here so that database
failures surface uniformly as BackendUnavailableError. Methods take the
caller's session; the caller owns the transaction and commits.

Handles:
- Point get, equality-filtered query and approved/pending scans
- Insert, conditional approve and delete (both report the affected row count)
- Audit log rows written in the same transaction as the change
- Live subscriptions through the change feed
"""

from contextlib import contextmanager
from functools import wraps
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from digilib.core.exceptions import BackendUnavailableError
from digilib.core.logging_config import logger
from digilib.models import AuditLog, Material, MaterialCategory
from digilib.services.change_feed import ChangeFeed, Subscription


@contextmanager
def backend_errors(operation: str):
    """
    Translate database driver failures into BackendUnavailableError.

    Integrity conflicts pass through untouched; callers use them as
    uniqueness guards.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (OperationalError, DBAPIError) as e:
        logger.error(f"[Repository] {operation} failed: {e}", extra={"event_type": "repository_error"})
        raise BackendUnavailableError(f"Material repository unavailable during {operation}") from e


def translate_db_errors(func_):
    @wraps(func_)
    async def wrapper(*args, **kwargs):
        with backend_errors(func_.__name__):
            return await func_(*args, **kwargs)
    return wrapper


def _category_value(category: Any) -> Any:
    if isinstance(category, str) and not isinstance(category, MaterialCategory):
        return MaterialCategory(category)
    return category


class MaterialRepository:
    """Repository for material metadata"""

    def __init__(self, change_feed: ChangeFeed):
        self.change_feed = change_feed

    # ==================== READS ====================

    @translate_db_errors
    async def get(self, db: AsyncSession, material_id: str) -> Optional[Material]:
        """Get material by ID"""
        result = await db.execute(select(Material).where(Material.id == material_id))
        return result.scalar_one_or_none()

    @translate_db_errors
    async def get_by_file_path(self, db: AsyncSession, file_path: str) -> Optional[Material]:
        """Material whose document is stored at this object path"""
        result = await db.execute(select(Material).where(Material.file_path == file_path))
        return result.scalars().first()

    @translate_db_errors
    async def query(
        self,
        db: AsyncSession,
        category: Optional[Any] = None,
        approved: Optional[bool] = None,
        limit: Optional[int] = None
    ) -> List[Material]:
        """
        Equality-filtered query in insertion order.

        Args:
            db: Database session
            category: Restrict to one category (None = any)
            approved: Restrict to approved or pending records (None = any)
            limit: Maximum rows returned
        """
        stmt = select(Material)
        if category is not None:
            stmt = stmt.where(Material.category == _category_value(category))
        if approved is not None:
            stmt = stmt.where(Material.approved == approved)
        stmt = stmt.order_by(Material.seq)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @translate_db_errors
    async def scan_approved(self, db: AsyncSession, approved: bool = True,
                            limit: Optional[int] = None) -> List[Material]:
        """Scan by approval flag, newest first; ties keep insertion order, missing timestamps last"""
        stmt = (
            select(Material)
            .where(Material.approved == approved)
            .order_by(Material.uploaded_at.desc().nulls_last(), Material.seq)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @translate_db_errors
    async def count(self, db: AsyncSession, category: Optional[Any] = None,
                    approved: Optional[bool] = None) -> int:
        stmt = select(func.count()).select_from(Material)
        if category is not None:
            stmt = stmt.where(Material.category == _category_value(category))
        if approved is not None:
            stmt = stmt.where(Material.approved == approved)
        return (await db.scalar(stmt)) or 0

    # ==================== WRITES ====================

    @translate_db_errors
    async def insert(self, db: AsyncSession, **fields: Any) -> Material:
        """Insert a material and load its server-assigned columns"""
        material = Material(**fields)
        db.add(material)
        await db.flush()
        await db.refresh(material)
        return material

    @translate_db_errors
    async def mark_approved(self, db: AsyncSession, material_id: str) -> int:
        """
        Conditional approve. Returns the number of rows updated, 0 when the
        row no longer exists.
        """
        result = await db.execute(
            update(Material)
            .where(Material.id == material_id)
            .values(approved=True)
        )
        return result.rowcount

    @translate_db_errors
    async def delete(self, db: AsyncSession, material_id: str, approved: Optional[bool] = None) -> int:
        """
        Delete a material row. Returns the number of rows removed.

        With ``approved`` set, the row is only removed while its flag still
        has that value, so a reject cannot remove a record approved meanwhile.
        """
        stmt = delete(Material).where(Material.id == material_id)
        if approved is not None:
            stmt = stmt.where(Material.approved.is_(approved))
        result = await db.execute(stmt)
        return result.rowcount

    # ==================== AUDIT ====================

    async def log_admin_action(
        self,
        db: AsyncSession,
        admin_id: str,
        action: str,
        target_type: str,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """Add an audit row to the caller's transaction"""
        log = AuditLog(
            admin_id=admin_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
        )
        db.add(log)
        return log

    @translate_db_errors
    async def recent_audit_logs(self, db: AsyncSession, limit: int = 50) -> List[AuditLog]:
        result = await db.execute(
            select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    # ==================== LIVE ====================

    def subscribe(self, category: Optional[str] = None, approved: Optional[bool] = None) -> Subscription:
        """Live variant of query(); the caller must cancel the subscription"""
        if category is not None:
            category = _category_value(category).value
        return self.change_feed.subscribe(category=category, approved=approved)
