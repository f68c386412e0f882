"""Pytest configuration and shared fixtures: in-memory SQLite store, fake S3, API client."""

import os

import bcrypt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

# Set test env before app imports so config picks it up
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from ats.core.tokens import TokenFactory
from ats.db.session import init_db
from ats.main import create_app
from ats.services.container import Services
from ats.services.datastore import DataStoreGateway
from ats.services.storage import BlobStoreGateway

from helpers import ADMIN_USERNAME, FAST_RETRY, PASSWORD, TEST_BUCKET, TEST_SECRET, USER_USERNAME, FakeS3Client


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite database with all tables, one per test."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def db(engine):
    return DataStoreGateway(engine, FAST_RETRY)


@pytest.fixture
def fake_s3():
    client = FakeS3Client()
    client.buckets.add(TEST_BUCKET)
    return client


@pytest.fixture
def blobs(fake_s3):
    return BlobStoreGateway(fake_s3, TEST_BUCKET, FAST_RETRY, app_env="test")


@pytest.fixture
def token_factory():
    return TokenFactory(TEST_SECRET)


async def insert_user(db: DataStoreGateway, username: str, password: str, is_admin: bool) -> int:
    # low bcrypt cost keeps the suite fast
    password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")
    await db.query(
        "INSERT INTO users (username, password_hash, is_admin) VALUES (:username, :password_hash, :is_admin)",
        {"username": username, "password_hash": password_hash, "is_admin": is_admin},
    )
    result = await db.query("SELECT id FROM users WHERE username = :username", {"username": username})
    return result.rows[0]["id"]


@pytest_asyncio.fixture
async def users(db):
    """Create an admin and a regular user; return {username: id}."""
    return {
        ADMIN_USERNAME: await insert_user(db, ADMIN_USERNAME, PASSWORD, True),
        USER_USERNAME: await insert_user(db, USER_USERNAME, PASSWORD, False),
    }


@pytest.fixture
def services(db, blobs, token_factory):
    return Services.assemble(db, blobs, token_factory)


@pytest_asyncio.fixture
async def client(services, users):
    """Yield AsyncClient against an app wired to the test services (lifespan not run)."""
    app = create_app(services=services)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
