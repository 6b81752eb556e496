from jose import jwt
from core.config import settings
from models.users import User
from models.refresh_tokens import RefreshToken
from utils.hashing import verify_password
from tests.conftest import register_user, refresh_token_from, TEST_PASSWORD


async def test_register_success(client, session):
    """Test successful user registration."""
    response = await register_user(client, "new@example.com")

    assert response.status_code == 201

    data = response.json()
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["id"]
    assert data["user"]["createdAt"]
    assert data["user"]["updatedAt"]
    assert "password" not in data["user"]
    assert "passwordHash" not in data["user"]

    # Access token in the body, refresh token only in the cookie
    assert data["accessToken"]
    assert "refreshToken" not in data

    payload = jwt.decode(data["accessToken"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["userId"] == data["user"]["id"]
    assert payload["email"] == "new@example.com"
    assert payload["type"] == "access"

    # Password stored hashed
    user = session.query(User).filter(User.email == "new@example.com").first()
    assert user is not None
    assert user.password_hash != TEST_PASSWORD
    assert verify_password(TEST_PASSWORD, user.password_hash)

    # Refresh token stored for the new session
    refresh_token = refresh_token_from(response)
    assert refresh_token
    assert session.query(RefreshToken).filter(RefreshToken.token == refresh_token).count() == 1


async def test_register_sets_httponly_refresh_cookie(client):
    response = await register_user(client, "cookie@example.com")

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.REFRESH_COOKIE_NAME}=")
    assert "HttpOnly" in set_cookie
    assert "samesite=strict" in set_cookie.lower()
    assert f"Max-Age={7 * 24 * 60 * 60}" in set_cookie
    # Not a production run
    assert "Secure" not in set_cookie


async def test_register_duplicate_email(client, session):
    """Test registration with an already registered email."""
    await register_user(client, "dup@example.com")

    response = await register_user(client, "dup@example.com", password="differentpass")

    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"
    assert response.json()["error"] == "Email already registered"
    assert session.query(User).filter(User.email == "dup@example.com").count() == 1


async def test_register_invalid_email(client, session):
    response = await register_user(client, "not-an-email")

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert response.json()["error"] == "Invalid email format"
    assert session.query(User).count() == 0


async def test_register_short_password(client, session):
    response = await register_user(client, "short@example.com", password="1234567")

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert "8 characters" in response.json()["error"]
    assert session.query(User).count() == 0


async def test_register_eight_character_password_accepted(client):
    response = await register_user(client, "eight@example.com", password="12345678")
    assert response.status_code == 201


async def test_register_missing_fields(client):
    response = await client.post("/api/auth/register", json={"email": "x@example.com"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = await client.post("/api/auth/register", json={"email": "", "password": ""})
    assert response.status_code == 400
    assert response.json()["error"] == "Email and password are required"


async def test_register_then_login(client):
    await register_user(client, "flow@example.com")

    response = await client.post("/api/auth/login", json={
        "email": "flow@example.com",
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "flow@example.com"
