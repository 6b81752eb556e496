from typing import Annotated, Optional
from fastapi import APIRouter, Cookie, Response
from starlette import status
from core.config import settings
from schemas.auth_schemas import (RegisterRequest, LoginRequest, AuthResponse, RefreshResponse,
                                  UserResponse)
from schemas.common import MessageResponse
from services.auth_service import AuthService
from utils.deps import db_dependency, user_dependency


router = APIRouter(
    prefix="/api/auth",
    tags=["auth"]
)


def set_refresh_cookie(response: Response, refresh_token: str):
    """The refresh token only ever leaves the server in this cookie."""
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="strict"
    )


def clear_refresh_cookie(response: Response):
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite="strict"
    )


RefreshCookie = Annotated[Optional[str], Cookie(alias=settings.REFRESH_COOKIE_NAME)]


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, response: Response, db: db_dependency):
    user, tokens = AuthService.register(body.email, body.password, db)

    set_refresh_cookie(response, tokens.refresh_token)

    return AuthResponse(user=UserResponse.model_validate(user), access_token=tokens.access_token)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, response: Response, db: db_dependency):
    user, tokens = AuthService.login(body.email, body.password, db)

    set_refresh_cookie(response, tokens.refresh_token)

    return AuthResponse(user=UserResponse.model_validate(user), access_token=tokens.access_token)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_access_token(response: Response, db: db_dependency,
                               refresh_token: RefreshCookie = None):
    """
    Get a new access token using the refresh token cookie.
    The cookie is rotated on every successful call.
    """
    tokens = AuthService.refresh(refresh_token, db)

    set_refresh_cookie(response, tokens.refresh_token)

    return RefreshResponse(access_token=tokens.access_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, db: db_dependency,
                 refresh_token: RefreshCookie = None):
    """
    Revoke the refresh token (if any) and clear its cookie. Always succeeds.
    """
    AuthService.logout(refresh_token, db)

    clear_refresh_cookie(response)

    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(response: Response, user: user_dependency, db: db_dependency):
    """
    Revoke every refresh token of the authenticated user.
    """
    AuthService.logout_all(user.get("user_id"), db)

    clear_refresh_cookie(response)

    return MessageResponse(message="Logged out of all sessions")
