from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from digilib.core.backend import get_db
from digilib.core.logging_config import logger, set_user_id
from digilib.models.user import UserProfile
from digilib.modules.auth.dependencies import get_current_user
from digilib.schemas.auth import LoginResponse, UserLogin, UserRegister, UserResponse
from digilib.services.identity_service import identity_service


router = APIRouter()


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """Register with email and password, signing the new identity in"""
    identity = await identity_service.register(db, user_data.email, user_data.password, user_data.name)
    profile, created = await identity_service.get_or_create_profile(
        db, str(identity.id), identity.display_name, identity.email
    )
    set_user_id(str(profile.id))

    return LoginResponse(
        access_token=identity_service.issue_token(identity),
        user=UserResponse.model_validate(profile),
        is_new_profile=created,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Sign in; the profile is created on the first successful sign-in"""
    identity = await identity_service.authenticate(db, credentials.email, credentials.password)
    profile, created = await identity_service.get_or_create_profile(
        db, str(identity.id), identity.display_name, identity.email
    )
    set_user_id(str(profile.id))

    return LoginResponse(
        access_token=identity_service.issue_token(identity),
        user=UserResponse.model_validate(profile),
        is_new_profile=created,
    )


@router.post("/logout")
async def logout(
    request: Request,
    current_user: UserProfile = Depends(get_current_user)
):
    """
    Sign out. Tokens are stateless bearer JWTs, so the client discards its
    token and the server only records the event.
    """
    client_ip = request.client.host if request.client else "unknown"
    logger.log_auth_event(event="logout", success=True, user_email=current_user.email, client_ip=client_ip)
    return {"success": True, "message": "Signed out"}


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserProfile = Depends(get_current_user)):
    """Current user's profile"""
    return current_user
