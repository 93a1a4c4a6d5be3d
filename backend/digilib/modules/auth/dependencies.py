from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from digilib.core.backend import get_db
from digilib.core.exceptions import AuthenticationError, AuthorizationError
from digilib.core.logging_config import set_user_id
from digilib.core.security import decode_access_token
from digilib.models.user import UserProfile, UserRole
from digilib.services.identity_service import identity_service
from digilib.services.lifecycle import Actor

security = HTTPBearer(auto_error=False)


async def resolve_token(db: AsyncSession, token: str) -> UserProfile:
    """
    Resolve a bearer token to a profile, creating the profile the first time
    an identity is seen.
    """
    payload = decode_access_token(token)
    profile, _ = await identity_service.get_or_create_profile(
        db,
        user_id=payload["sub"],
        name=payload.get("name"),
        email=payload.get("email"),
    )
    set_user_id(str(profile.id))
    return profile


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> UserProfile:
    """Get current authenticated user"""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return await resolve_token(db, credentials.credentials)


async def get_optional_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[UserProfile]:
    """Get current user when a token is sent, None for anonymous readers"""
    if credentials is None:
        return None
    return await resolve_token(db, credentials.credentials)


async def get_current_admin(
    current_user: UserProfile = Depends(get_current_user)
) -> UserProfile:
    """Get current admin user"""
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin access required", required_role=UserRole.ADMIN.value)
    return current_user


def actor_for(profile: Optional[UserProfile]) -> Optional[Actor]:
    return Actor.from_profile(profile) if profile is not None else None
