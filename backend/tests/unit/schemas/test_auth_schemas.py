"""
Unit Tests for Auth Schemas
"""
import pytest
from pydantic import ValidationError
from datetime import datetime

from digilib.models import UserProfile, UserRole
from digilib.schemas.auth import UserRegister, UserLogin, UserResponse, LoginResponse


class TestUserRegister:
    """Test UserRegister schema"""

    def test_valid_registration(self):
        data = UserRegister(email="reader@example.com", password="SecurePassword123!", name="Reader")

        assert data.email == "reader@example.com"
        assert data.name == "Reader"

    def test_name_is_optional(self):
        assert UserRegister(email="reader@example.com", password="SecurePassword123!").name is None

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            UserRegister(email="not-an-email", password="SecurePassword123!")

    def test_short_password(self):
        with pytest.raises(ValidationError):
            UserRegister(email="reader@example.com", password="short")


class TestUserLogin:
    def test_requires_password(self):
        with pytest.raises(ValidationError):
            UserLogin(email="reader@example.com")


class TestUserResponse:
    """Test UserResponse schema"""

    def test_from_profile(self):
        """Test building the response from an ORM profile"""
        profile = UserProfile(
            id="b8a4c0de-0000-4000-8000-000000000001",
            name="Ada",
            email="ada@example.com",
            role=UserRole.ADMIN,
            created_at=datetime(2024, 1, 1),
        )

        response = UserResponse.model_validate(profile)

        assert response.id == profile.id
        assert response.role == "admin"
        assert response.created_at == datetime(2024, 1, 1)

    def test_login_response_defaults(self):
        user = UserResponse(id="u-1", name="Ada", email="ada@example.com", role="user")

        response = LoginResponse(access_token="token", user=user)

        assert response.token_type == "bearer"
        assert response.is_new_profile is False
