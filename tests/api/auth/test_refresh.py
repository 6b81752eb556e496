from datetime import timedelta
from jose import jwt
from core.config import settings
from models.refresh_tokens import RefreshToken
from services.token_service import TokenService
from utils.dates import utcnow
from tests.conftest import refresh_token_from, post_with_refresh_cookie, auth_headers


async def test_refresh_token_success(client, registered_user):
    """Test successful token refresh with the refresh cookie."""
    response = await post_with_refresh_cookie(client, "/api/auth/refresh", registered_user["refresh_token"])

    assert response.status_code == 200

    data = response.json()
    assert list(data) == ["accessToken"]

    payload = jwt.decode(data["accessToken"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["userId"] == registered_user["id"]
    assert payload["email"] == registered_user["email"]
    assert payload["type"] == "access"

    # The new access token works
    response = await client.get("/api/tasks", headers=auth_headers(data["accessToken"]))
    assert response.status_code == 200


async def test_refresh_uses_cookie_jar(client, registered_user):
    """The cookie set at registration is sent back automatically."""
    response = await client.post("/api/auth/refresh")
    assert response.status_code == 200


async def test_refresh_token_rotation(client, registered_user, session):
    """The presented refresh token is single use."""
    old_refresh = registered_user["refresh_token"]

    response = await post_with_refresh_cookie(client, "/api/auth/refresh", old_refresh)
    assert response.status_code == 200

    new_refresh = refresh_token_from(response)
    assert new_refresh
    assert new_refresh != old_refresh

    tokens = session.query(RefreshToken).filter(RefreshToken.user_id == registered_user["id"]).all()
    assert [t.token for t in tokens] == [new_refresh]

    # Reuse of the old token fails
    response = await post_with_refresh_cookie(client, "/api/auth/refresh", old_refresh)
    assert response.status_code == 401
    assert response.json() == {"error": "Refresh token not found", "code": "UNAUTHORIZED"}

    # The rotated one still works
    response = await post_with_refresh_cookie(client, "/api/auth/refresh", new_refresh)
    assert response.status_code == 200


async def test_refresh_without_cookie(client):
    response = await client.post("/api/auth/refresh")

    assert response.status_code == 401
    assert response.json()["error"] == "Refresh token required"


async def test_refresh_with_garbage_token(client, registered_user):
    response = await post_with_refresh_cookie(client, "/api/auth/refresh", "not-a-jwt")

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or expired refresh token"


async def test_refresh_with_signature_expired_token(client, registered_user):
    expired, _ = TokenService.create_refresh_token(
        registered_user["id"], registered_user["email"], expires_delta=timedelta(seconds=-5)
    )

    response = await post_with_refresh_cookie(client, "/api/auth/refresh", expired)

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or expired refresh token"


async def test_refresh_with_access_token_rejected(client, registered_user):
    response = await post_with_refresh_cookie(client, "/api/auth/refresh", registered_user["access_token"])

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or expired refresh token"


async def test_refresh_with_valid_but_unstored_token(client, registered_user):
    """Signed correctly but never stored (or already revoked)."""
    token, _ = TokenService.create_refresh_token(registered_user["id"], registered_user["email"])

    response = await post_with_refresh_cookie(client, "/api/auth/refresh", token)

    assert response.status_code == 401
    assert response.json()["error"] == "Refresh token not found"


async def test_refresh_with_stored_expiry_passed(client, registered_user, session):
    """The stored expiry is checked even when the JWT itself is still valid."""
    record = session.query(RefreshToken).filter(RefreshToken.token == registered_user["refresh_token"]).first()
    record.expires_at = utcnow() - timedelta(minutes=1)
    session.commit()

    response = await post_with_refresh_cookie(client, "/api/auth/refresh", registered_user["refresh_token"])

    assert response.status_code == 401
    assert response.json()["error"] == "Refresh token expired"

    # The expired row is removed
    session.expire_all()
    assert session.query(RefreshToken).filter(RefreshToken.token == registered_user["refresh_token"]).count() == 0


async def test_refresh_sets_new_cookie(client, registered_user):
    response = await post_with_refresh_cookie(client, "/api/auth/refresh", registered_user["refresh_token"])

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.REFRESH_COOKIE_NAME}=")
    assert "HttpOnly" in set_cookie
