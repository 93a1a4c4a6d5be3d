"""
DigiLib - Test Configuration and Fixtures
"""
import os
from pathlib import Path
from typing import AsyncGenerator, Awaitable, Callable
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from faker import Faker

# Set testing environment before the app reads its settings
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_FILE'] = ''
os.environ['SEED_ON_STARTUP'] = 'false'

from digilib.main import app
from digilib.core.backend import Backend, create_backend
from digilib.core.config import Settings, settings
from digilib.core.database import generate_uuid
from digilib.core.security import create_access_token
from digilib.models import Material, MaterialCategory, MaterialType, UserProfile, UserRole
from digilib.services.lifecycle import Actor, MaterialLifecycle, UploadedFile
from digilib.services.storage_service import LocalObjectStore

fake = Faker()

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"
FILES_URL = "http://test/api/v1/files"


def build_test_settings(tmp_path: Path) -> Settings:
    return settings.model_copy(update={
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        "LOCAL_STORAGE_DIR": str(tmp_path / "storage"),
        "PUBLIC_FILES_URL": FILES_URL,
        "STORAGE_DELETE_RETRIES": 2,
        "STORAGE_RETRY_BASE_DELAY": 0.0,
        "SEED_ON_STARTUP": False,
    })


def build_test_backend(tmp_path: Path) -> Backend:
    """Backend on a throwaway SQLite file and local store; call startup() before use"""
    test_settings = build_test_settings(tmp_path)
    store = LocalObjectStore(tmp_path / "storage", FILES_URL, retries=2, base_delay=0.0)
    return create_backend(test_settings, object_store=store)


def token_for(profile: UserProfile) -> str:
    return create_access_token({
        'sub': str(profile.id),
        'name': profile.name,
        'email': profile.email,
    })


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return build_test_settings(tmp_path)


@pytest.fixture
async def backend(tmp_path: Path) -> AsyncGenerator[Backend, None]:
    """Fresh backend per test"""
    test_backend = build_test_backend(tmp_path)
    await test_backend.startup()
    yield test_backend
    await test_backend.dispose()


@pytest.fixture
async def db_session(backend: Backend) -> AsyncGenerator[AsyncSession, None]:
    async with backend.session_factory() as session:
        yield session


@pytest.fixture
async def client(backend: Backend) -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the test backend"""
    app.state.backend = backend

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.state.backend = None


@pytest.fixture
def lifecycle(backend: Backend) -> MaterialLifecycle:
    return MaterialLifecycle(backend)


@pytest.fixture
async def test_user(db_session: AsyncSession) -> UserProfile:
    """Create a reader profile"""
    user = UserProfile(
        id=generate_uuid(),
        name=fake.name(),
        email=fake.email(),
        role=UserRole.USER,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> UserProfile:
    """Create an admin profile"""
    user = UserProfile(
        id=generate_uuid(),
        name=fake.name(),
        email=fake.email(),
        role=UserRole.ADMIN,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: UserProfile) -> dict:
    """Generate authentication headers for test user"""
    return {'Authorization': f'Bearer {token_for(test_user)}'}


@pytest.fixture
def admin_auth_headers(admin_user: UserProfile) -> dict:
    """Generate authentication headers for admin user"""
    return {'Authorization': f'Bearer {token_for(admin_user)}'}


@pytest.fixture
def user_actor(test_user: UserProfile) -> Actor:
    return Actor.from_profile(test_user)


@pytest.fixture
def admin_actor(admin_user: UserProfile) -> Actor:
    return Actor.from_profile(admin_user)


@pytest.fixture
def pdf_upload() -> UploadedFile:
    return UploadedFile(filename="lecture notes.pdf", content_type="application/pdf", content=PDF_BYTES)


@pytest.fixture
def academic_metadata() -> dict:
    return {
        "title": "Data Structures Notes",
        "description": "Week 1 to 6 lecture notes",
        "type": "Notes",
        "category": "Academic",
        "subject": "Computer Science",
        "semester": "Semester 3",
        "tags": "trees, graphs , ,heaps",
    }


@pytest.fixture
def general_metadata() -> dict:
    return {
        "title": fake.sentence(nb_words=4).rstrip("."),
        "description": fake.paragraph(),
        "type": "Book",
        "category": "General",
        "tags": ["fiction"],
    }


@pytest.fixture
def make_material(backend: Backend) -> Callable[..., Awaitable[Material]]:
    """Insert a material directly through the repository"""
    async def _make(**overrides) -> Material:
        fields = {
            "title": fake.sentence(nb_words=3).rstrip("."),
            "description": "",
            "type": MaterialType.BOOK,
            "category": MaterialCategory.GENERAL,
            "tags": [],
            "file_url": "https://example.org/book.pdf",
            "uploaded_by": "fixture",
            "approved": True,
        }
        fields.update(overrides)
        async with backend.session_factory() as session:
            material = await backend.repository.insert(session, **fields)
            await session.commit()
        return material
    return _make
