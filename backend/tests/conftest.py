"""
Shared pytest fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without a
live Postgres instance.  JSON columns fall back to SQLite's JSON type and
UUIDs are stored as CHAR(32).

Environment overrides are applied before importing citycare modules so that
Settings() picks up dev-mode auth.  Requests authenticate with the
X-Dev-User-ID header; roles come from an in-memory identity directory.
"""
import itertools
import os

# Set test environment BEFORE importing any citycare module
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEV_SKIP_AUTH", "true")
os.environ.setdefault("CLERK_SECRET_KEY", "")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "")
os.environ.setdefault("STATS_TIMEZONE", "UTC")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from citycare.core.identity import ADMIN_ROLE, DirectoryUser, StaticDirectory
from citycare.core.media import MediaUploader, UploadedFile
from citycare.models.base import Base
from citycare.models.complaint import Complaint  # noqa: F401  registers the model
from citycare.services.lifecycle import new_complaint
from citycare.services.store import ComplaintStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_ID = "user_admin1"
ADMIN2_ID = "user_admin2"
CITIZEN_ID = "U1"
OTHER_CITIZEN_ID = "U2"

VALID_DESCRIPTION = "A 30-character-or-longer description of a broken road"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> ComplaintStore:
    return ComplaintStore(db_session)


@pytest.fixture
def directory() -> StaticDirectory:
    return StaticDirectory(
        [
            DirectoryUser(id=ADMIN_ID, email="admin@example.com", name="Test Admin", role=ADMIN_ROLE),
            DirectoryUser(id=ADMIN2_ID, email="admin2@example.com", name="Second Admin", role=ADMIN_ROLE),
            DirectoryUser(id=CITIZEN_ID, email="u1@example.com", name="Citizen One"),
            DirectoryUser(id=OTHER_CITIZEN_ID, email="u2@example.com", name="Citizen Two"),
        ]
    )


class FakeUploader(MediaUploader):
    def __init__(self):
        self.calls: list[tuple[str, int, str]] = []

    async def upload(self, filename: str, content: bytes, content_type: str) -> UploadedFile:
        self.calls.append((filename, len(content), content_type))
        return UploadedFile(
            url=f"https://res.cloudinary.test/citycare/{filename}",
            filename=filename,
            provider="cloudinary",
        )


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, directory: StaticDirectory, uploader: FakeUploader):
    """
    AsyncClient for the FastAPI app with:
    - DB dependency overridden to use the test session
    - identity directory and media uploader replaced by fakes
    - requests authenticated as the citizen U1 by default (pass an
      X-Dev-User-ID header to switch users, or "" to be anonymous)
    """
    from citycare.main import app
    from citycare.core.db import get_db
    from citycare.core.identity import get_identity_directory
    from citycare.core.media import get_media_uploader

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_identity_directory] = lambda: directory
    app.dependency_overrides[get_media_uploader] = lambda: uploader

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
        headers={"X-Dev-User-ID": CITIZEN_ID},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def as_admin() -> dict[str, str]:
    return {"X-Dev-User-ID": ADMIN_ID}


@pytest.fixture
def as_other() -> dict[str, str]:
    return {"X-Dev-User-ID": OTHER_CITIZEN_ID}


@pytest.fixture
def make_complaint(store: ComplaintStore):
    """Insert a complaint directly through the store."""
    serial = itertools.count(1)

    async def _make(owner_id: str = CITIZEN_ID, **fields) -> Complaint:
        data = {
            "type": "potholes",
            "description": VALID_DESCRIPTION,
            "location": {"lat": 12.9, "lng": 77.6, "address": None},
            "phone": None,
            "urgent": False,
            "files": [],
        }
        data.update(fields)
        complaint = new_complaint(data, owner_id=owner_id)
        complaint.registration_number = f"REG-TEST-{next(serial):04d}"
        return await store.insert(complaint)

    return _make


def complaint_payload(**overrides) -> dict:
    payload = {
        "type": "potholes",
        "description": VALID_DESCRIPTION,
        "location": {"lat": 12.9, "lng": 77.6},
    }
    payload.update(overrides)
    return payload
