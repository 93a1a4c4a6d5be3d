"""
Unit Tests for Security Module
Tests for: password hashing, JWT access tokens
"""
import pytest
from datetime import timedelta
from jose import jwt

from digilib.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    decode_token,
    decode_access_token,
)
from digilib.core.config import settings
from digilib.core.exceptions import AuthenticationError


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_hash_password_returns_different_value(self):
        """Test that hashing returns a different value than input"""
        password = "testpassword123"
        hashed = get_password_hash(password)

        assert hashed != password
        assert len(hashed) > 0

    def test_hash_password_different_each_time(self):
        """Test that hashing same password returns different hashes"""
        password = "testpassword123"

        # Bcrypt generates different salts
        assert get_password_hash(password) != get_password_hash(password)

    def test_verify_password_correct(self):
        """Test verifying correct password"""
        hashed = get_password_hash("testpassword123")

        assert verify_password("testpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        """Test verifying incorrect password"""
        hashed = get_password_hash("testpassword123")

        assert verify_password("wrongpassword", hashed) is False

    def test_hash_long_password_truncated(self):
        """Test that long passwords are truncated to bcrypt limit"""
        long_password = "a" * 100
        hashed = get_password_hash(long_password)

        assert verify_password(long_password, hashed) is True


class TestAccessTokens:
    """Test JWT access token creation and decoding"""

    def test_token_carries_identity_claims(self):
        """Test that sub, name and email survive a round trip"""
        token = create_access_token({"sub": "user-1", "name": "Ada", "email": "ada@example.com"})

        payload = decode_access_token(token)

        assert payload["sub"] == "user-1"
        assert payload["name"] == "Ada"
        assert payload["email"] == "ada@example.com"
        assert payload["type"] == "access"

    def test_expired_token_rejected(self):
        """Test that an expired token raises AuthenticationError"""
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(token)

        assert "expired" in exc_info.value.message.lower()
        assert exc_info.value.http_status == 401

    def test_token_signed_with_other_secret_rejected(self):
        """Test that a token signed with a different key is rejected"""
        token = jwt.encode({"sub": "user-1", "type": "access"}, "other-secret", algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_non_access_token_rejected(self):
        """Test that tokens of another type are not accepted as access tokens"""
        token = jwt.encode(
            {"sub": "user-1", "type": "refresh"},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )

        with pytest.raises(AuthenticationError) as exc_info:
            decode_access_token(token)

        assert exc_info.value.message == "Invalid token type"

    def test_token_without_subject_rejected(self):
        """Test that an access token must name its subject"""
        token = create_access_token({"name": "Nobody"})

        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    def test_garbage_token_rejected(self):
        """Test that a malformed token is rejected"""
        with pytest.raises(AuthenticationError):
            decode_access_token("not-a-jwt")
