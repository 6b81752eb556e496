from typing import Optional
from pydantic import BaseModel
from schemas.common import CamelModel, UtcDatetime


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenPayload(BaseModel):
    """Claims of a verified access or refresh token."""
    user_id: str
    email: str
    type: str
    iat: Optional[int] = None
    exp: Optional[int] = None
    jti: Optional[str] = None


# Format and strength rules are enforced by AuthService so that they come
# back as VALIDATION_ERROR with a specific message.
class RegisterRequest(BaseModel):
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(CamelModel):
    id: str
    email: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class AuthResponse(CamelModel):
    user: UserResponse
    access_token: str


class RefreshResponse(CamelModel):
    access_token: str
