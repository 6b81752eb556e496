import os

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("LOG_DIR", "logs")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.config import settings
from core.database import Base
from utils.deps import get_db

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

TEST_PASSWORD = "password123"


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
async def client(session: Session):
    """
    Yields an HTTP client that talks to the app over ASGI, using the test
    database session for every request.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def register_user(client: AsyncClient, email: str, password: str = TEST_PASSWORD):
    return await client.post("/api/auth/register", json={"email": email, "password": password})


async def login_user(client: AsyncClient, email: str, password: str = TEST_PASSWORD):
    return await client.post("/api/auth/login", json={"email": email, "password": password})


def refresh_token_from(response) -> str:
    return response.cookies.get(settings.REFRESH_COOKIE_NAME)


async def post_with_refresh_cookie(client: AsyncClient, path: str, token: str):
    """
    POST with exactly the given refresh token as cookie, ignoring whatever
    the client's cookie jar currently holds.
    """
    client.cookies.clear()
    return await client.post(path, headers={"Cookie": f"{settings.REFRESH_COOKIE_NAME}={token}"})


def auth_headers(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
async def registered_user(client):
    """Registers a@example.com and returns its credentials and tokens."""
    response = await register_user(client, "a@example.com")
    assert response.status_code == 201

    data = response.json()
    return {
        "id": data["user"]["id"],
        "email": "a@example.com",
        "password": TEST_PASSWORD,
        "access_token": data["accessToken"],
        "refresh_token": refresh_token_from(response),
    }


@pytest.fixture
async def other_user(client):
    """A second, unrelated account for ownership tests."""
    response = await register_user(client, "b@example.com")
    assert response.status_code == 201

    data = response.json()
    return {
        "id": data["user"]["id"],
        "email": "b@example.com",
        "access_token": data["accessToken"],
    }
