"""
Unit Tests for the Identity Service
Tests for: registration, authentication, lazy profile creation, role changes
"""
import pytest
from unittest.mock import patch
from faker import Faker

from digilib.core.database import generate_uuid
from digilib.core.exceptions import AuthenticationError, UserNotFoundError, ValidationError
from digilib.core.security import decode_access_token
from digilib.models import UserRole
from digilib.services.identity_service import IdentityService

fake = Faker()


@pytest.fixture
def service():
    return IdentityService()


class TestCredentials:
    """Test the built-in provider"""

    async def test_register_and_authenticate(self, service, db_session):
        email = fake.email()
        identity = await service.register(db_session, email, "CorrectHorse9", name="Ada")

        authenticated = await service.authenticate(db_session, email.upper(), "CorrectHorse9")

        assert authenticated.id == identity.id
        assert identity.display_name == "Ada"
        assert identity.hashed_password != "CorrectHorse9"

    async def test_duplicate_email_rejected(self, service, db_session):
        email = fake.email()
        await service.register(db_session, email, "CorrectHorse9")

        with pytest.raises(ValidationError) as exc_info:
            await service.register(db_session, email, "AnotherPass9")

        assert exc_info.value.details["field"] == "email"

    async def test_wrong_password_rejected(self, service, db_session):
        email = fake.email()
        await service.register(db_session, email, "CorrectHorse9")

        with pytest.raises(AuthenticationError):
            await service.authenticate(db_session, email, "wrong-password")

    async def test_unknown_email_rejected(self, service, db_session):
        with pytest.raises(AuthenticationError):
            await service.authenticate(db_session, fake.email(), "whatever1")

    async def test_display_name_defaults_to_email_local_part(self, service, db_session):
        identity = await service.register(db_session, "grace.hopper@example.com", "CorrectHorse9")

        assert identity.display_name == "grace.hopper"

    async def test_token_claims(self, service, db_session):
        identity = await service.register(db_session, "ada@example.com", "CorrectHorse9", name="Ada")

        payload = decode_access_token(service.issue_token(identity))

        assert payload["sub"] == str(identity.id)
        assert payload["name"] == "Ada"
        assert payload["email"] == "ada@example.com"


class TestProfiles:
    """Test lookup-or-create of profiles"""

    async def test_first_sight_creates_user_profile(self, service, db_session):
        user_id = generate_uuid()

        profile, created = await service.get_or_create_profile(db_session, user_id, "Ada", "ada@example.com")

        assert created is True
        assert profile.id == user_id
        assert profile.role == UserRole.USER
        assert profile.created_at is not None

    async def test_later_sight_reads_unchanged(self, service, db_session):
        """Test a second authentication does not overwrite the stored profile"""
        user_id = generate_uuid()
        await service.get_or_create_profile(db_session, user_id, "Ada", "ada@example.com")

        profile, created = await service.get_or_create_profile(db_session, user_id, "Renamed", "new@example.com")

        assert created is False
        assert profile.name == "Ada"
        assert profile.email == "ada@example.com"

    async def test_concurrent_creation_resolves_to_one_profile(self, service, backend):
        """Test the loser of a primary-key race reads the winner's row"""
        user_id = generate_uuid()
        real_get_profile = service.get_profile
        lookups = []

        async def stale_lookup(db, uid):
            lookups.append(uid)
            if len(lookups) == 1:
                return None  # looked up before the winner committed
            return await real_get_profile(db, uid)

        async with backend.session_factory() as first, backend.session_factory() as second:
            winner, won = await service.get_or_create_profile(first, user_id, "First", "a@example.com")

            with patch.object(service, "get_profile", side_effect=stale_lookup):
                loser, lost = await service.get_or_create_profile(second, user_id, "Second", "a@example.com")

        assert won is True
        assert lost is False
        assert loser.id == winner.id
        assert loser.name == "First"
        assert len(lookups) == 2

    async def test_set_role(self, service, db_session, test_user):
        profile = await service.set_role(db_session, str(test_user.id), UserRole.ADMIN)

        assert profile.is_admin is True

    async def test_set_role_unknown_user(self, service, db_session):
        with pytest.raises(UserNotFoundError):
            await service.set_role(db_session, generate_uuid(), UserRole.ADMIN)
