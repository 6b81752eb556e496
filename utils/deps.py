from core.database import SessionLocal
from typing import Annotated, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from core.errors import UnauthorizedError
from services.token_service import TokenService, ACCESS_TOKEN_TYPE

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)]
):
    """
    Authenticates a request from its bearer access token.

    Purely signature and expiry based; the refresh token store is never
    consulted, so a logged-out user's access token works until it expires.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Access token required")

    # TokenExpiredError / TokenInvalidError carry "Token expired" / "Invalid token"
    payload = TokenService.decode_token(credentials.credentials, expected_type=ACCESS_TOKEN_TYPE)

    # Picked up by the request logging middleware
    request.state.user_id = payload.user_id

    return {"user_id": payload.user_id, "email": payload.email}


user_dependency = Annotated[dict, Depends(get_current_user)]
