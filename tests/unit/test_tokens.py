from datetime import timedelta
import pytest
from jose import jwt
from core.config import settings
from core.errors import TokenExpiredError, TokenInvalidError, ErrorCode
from services.token_service import TokenService, ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE


def test_access_token_creation():
    token = TokenService.create_access_token(user_id="user-1", email="user@example.com")
    assert token

    payload = jwt.decode(token, key=settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["userId"] == "user-1"
    assert payload["email"] == "user@example.com"
    assert payload["type"] == "access"
    assert payload["exp"] - payload["iat"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def test_refresh_token_creation():
    token, expires_at = TokenService.create_refresh_token(user_id="user-1", email="user@example.com")
    assert token

    payload = jwt.decode(token, key=settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["userId"] == "user-1"
    assert payload["type"] == "refresh"
    assert payload["jti"]
    assert payload["exp"] - payload["iat"] == settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60
    assert int(expires_at.timestamp()) == payload["exp"]


def test_refresh_tokens_are_unique():
    first, _ = TokenService.create_refresh_token("user-1", "user@example.com")
    second, _ = TokenService.create_refresh_token("user-1", "user@example.com")
    assert first != second


def test_decode_returns_identity():
    token = TokenService.create_access_token("user-1", "user@example.com")

    payload = TokenService.decode_token(token)

    assert payload.user_id == "user-1"
    assert payload.email == "user@example.com"
    assert payload.iat is not None
    assert payload.exp > payload.iat


def test_expired_token():
    token = TokenService.create_access_token(
        "user-1", "user@example.com", expires_delta=timedelta(seconds=-10)
    )

    with pytest.raises(TokenExpiredError) as exc_info:
        TokenService.decode_token(token)

    assert exc_info.value.message == "Token expired"
    assert exc_info.value.code is ErrorCode.UNAUTHORIZED


def test_tampered_token():
    token = TokenService.create_access_token("user-1", "user@example.com")
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[::-1]])

    with pytest.raises(TokenInvalidError) as exc_info:
        TokenService.decode_token(tampered)

    assert exc_info.value.message == "Invalid token"


def test_token_signed_with_other_secret():
    forged = jwt.encode(
        {"userId": "user-1", "email": "user@example.com", "type": "access"},
        "another-secret",
        algorithm=settings.ALGORITHM
    )

    with pytest.raises(TokenInvalidError):
        TokenService.decode_token(forged)


def test_garbage_token():
    with pytest.raises(TokenInvalidError):
        TokenService.decode_token("invalid_token_format")


def test_token_missing_identity_claims():
    token = jwt.encode({"type": "access"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    with pytest.raises(TokenInvalidError):
        TokenService.decode_token(token)


def test_wrong_token_type_rejected():
    access_token = TokenService.create_access_token("user-1", "user@example.com")
    refresh_token, _ = TokenService.create_refresh_token("user-1", "user@example.com")

    with pytest.raises(TokenInvalidError):
        TokenService.decode_token(access_token, expected_type=REFRESH_TOKEN_TYPE)

    with pytest.raises(TokenInvalidError):
        TokenService.decode_token(refresh_token, expected_type=ACCESS_TOKEN_TYPE)
