"""
Identity Service - built-in email/password provider and library profiles

Credentials (Identity) belong to the provider; profiles (UserProfile) belong
to the library. A profile is created exactly once, on the first successful
authentication of an identity, and read unchanged afterwards. Roles are never
raised here; see digilib.scripts.grant_admin.
"""

from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from digilib.core.exceptions import AuthenticationError, UserNotFoundError, ValidationError
from digilib.core.logging_config import logger
from digilib.core.security import create_access_token, get_password_hash, verify_password
from digilib.models import Identity, UserProfile, UserRole
from digilib.services.material_repository import backend_errors


def default_display_name(email: str) -> str:
    return email.split("@")[0] if email else "Reader"


class IdentityService:
    """Service for credentials, tokens and lazily created profiles"""

    # ==================== PROVIDER ====================

    async def register(self, db: AsyncSession, email: str, password: str,
                       name: Optional[str] = None) -> Identity:
        """Create credentials for a new identity"""
        email = email.strip().lower()
        with backend_errors("register"):
            existing = await db.execute(select(Identity).where(Identity.email == email))
            if existing.scalar_one_or_none():
                logger.log_auth_event(event="register", success=False, user_email=email,
                                      reason="Email already registered")
                raise ValidationError("Email already registered", field="email")

            identity = Identity(
                email=email,
                display_name=(name or "").strip() or default_display_name(email),
                hashed_password=get_password_hash(password),
            )
            db.add(identity)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise ValidationError("Email already registered", field="email")
            await db.refresh(identity)

        logger.log_auth_event(event="register", success=True, user_email=email)
        return identity

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> Identity:
        """Verify credentials; the same error covers unknown email and wrong password"""
        email = email.strip().lower()
        with backend_errors("authenticate"):
            result = await db.execute(select(Identity).where(Identity.email == email))
            identity = result.scalar_one_or_none()

        if identity is None or not verify_password(password, identity.hashed_password):
            logger.log_auth_event(event="login", success=False, user_email=email,
                                  reason="Invalid credentials")
            raise AuthenticationError("Incorrect email or password")

        logger.log_auth_event(event="login", success=True, user_email=email)
        return identity

    @staticmethod
    def issue_token(identity: Identity) -> str:
        return create_access_token({
            "sub": str(identity.id),
            "name": identity.display_name or default_display_name(identity.email),
            "email": identity.email,
        })

    # ==================== PROFILES ====================

    async def get_profile(self, db: AsyncSession, user_id: str) -> Optional[UserProfile]:
        with backend_errors("get_profile"):
            result = await db.execute(select(UserProfile).where(UserProfile.id == user_id))
            return result.scalar_one_or_none()

    async def get_or_create_profile(self, db: AsyncSession, user_id: str, name: Optional[str],
                                    email: Optional[str]) -> Tuple[UserProfile, bool]:
        """
        Look up the profile for an identity, creating it on first sight.

        Returns (profile, created). A concurrent first authentication of the
        same identity loses the primary-key race and re-reads the winner's row.
        """
        profile = await self.get_profile(db, user_id)
        if profile is not None:
            return profile, False

        profile = UserProfile(
            id=user_id,
            name=(name or "").strip() or default_display_name(email or ""),
            email=email or "",
            role=UserRole.USER,
        )
        db.add(profile)
        try:
            with backend_errors("create_profile"):
                await db.commit()
        except IntegrityError:
            await db.rollback()
            profile = await self.get_profile(db, user_id)
            if profile is None:
                raise
            return profile, False

        await db.refresh(profile)
        logger.info(f"[Identity] Created profile for {profile.email or user_id}")
        return profile, True

    async def set_role(self, db: AsyncSession, user_id: str, role: UserRole) -> UserProfile:
        """Out-of-band role change, used by the grant-admin script only"""
        profile = await self.get_profile(db, user_id)
        if profile is None:
            raise UserNotFoundError(user_id)
        profile.role = role
        with backend_errors("set_role"):
            await db.commit()
        logger.warning(f"[Identity] Role of {profile.email} set to {role.value}")
        return profile

    async def find_profile_by_email(self, db: AsyncSession, email: str) -> Optional[UserProfile]:
        with backend_errors("find_profile_by_email"):
            result = await db.execute(select(UserProfile).where(UserProfile.email == email.strip().lower()))
            return result.scalars().first()


identity_service = IdentityService()
