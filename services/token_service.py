import secrets
from datetime import datetime, timezone, timedelta
from typing import Optional, Tuple
from jose import jwt, JWTError, ExpiredSignatureError
from pydantic import ValidationError as PayloadError
from core.config import settings
from core.errors import TokenExpiredError, TokenInvalidError
from schemas.auth_schemas import TokenPayload

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenService:
    """
    Signs and verifies JWTs for the session lifecycle.

    Access and refresh tokens share the signing scheme and carry the same
    identity claims (userId, email); the "type" claim keeps one from being
    accepted in place of the other. Nothing here touches the database.
    """

    @staticmethod
    def _encode(user_id: str, email: str, token_type: str, expires_delta: timedelta, jti: Optional[str] = None):
        now = datetime.now(timezone.utc)
        expire = now + expires_delta

        payload = {
            "userId": user_id,
            "email": email,
            "type": token_type,
            "iat": now,
            "exp": expire
        }
        if jti:
            payload["jti"] = jti

        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM), expire

    @staticmethod
    def create_access_token(user_id: str, email: str, expires_delta: timedelta = None) -> str:
        """
        Creates a JWT access token.

        Args:
            user_id: User's ID
            email: User's email
            expires_delta: Token lifetime (default: ACCESS_TOKEN_EXPIRE_MINUTES)

        Returns:
            JWT access token string
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        token, _ = TokenService._encode(user_id, email, ACCESS_TOKEN_TYPE, expires_delta)
        return token

    @staticmethod
    def create_refresh_token(user_id: str, email: str, expires_delta: timedelta = None) -> Tuple[str, datetime]:
        """
        Creates a JWT refresh token.

        A random jti makes every refresh token unique, even two issued for
        the same user within the same second.

        Returns:
            Tuple of (refresh_token_string, expires_at)
        """
        if expires_delta is None:
            expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        return TokenService._encode(
            user_id, email, REFRESH_TOKEN_TYPE, expires_delta, jti=secrets.token_urlsafe(32)
        )

    @staticmethod
    def decode_token(token: str, expected_type: Optional[str] = None) -> TokenPayload:
        """
        Verifies signature and expiry and returns the token claims.

        Raises:
            TokenExpiredError: exp is in the past
            TokenInvalidError: bad signature, malformed token, missing
                claims, or a token of the wrong type
        """
        try:
            claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise TokenInvalidError()

        try:
            payload = TokenPayload(
                user_id=claims.get("userId"),
                email=claims.get("email"),
                type=claims.get("type"),
                iat=claims.get("iat"),
                exp=claims.get("exp"),
                jti=claims.get("jti")
            )
        except PayloadError:
            raise TokenInvalidError()

        if expected_type is not None and payload.type != expected_type:
            raise TokenInvalidError()

        return payload
