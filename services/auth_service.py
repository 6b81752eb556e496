from typing import Optional, Tuple
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from core.errors import ValidationError, UnauthorizedError, ConflictError, NotFoundError
from models.users import User
from schemas.auth_schemas import Token
from services.refresh_token_service import RefreshTokenService
from services.token_service import TokenService, REFRESH_TOKEN_TYPE
from utils.dates import as_utc, utcnow
from utils.hashing import get_password_hash, verify_password
from utils.logger import get_logger, sanitize_log_data
from utils.validation import validate_email_format, validate_password_strength

logger = get_logger(__name__)

# Same message for unknown email and wrong password
INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """
    Register, login, refresh and logout.

    Every successful register/login/refresh ends with exactly one stored
    refresh token for the session: login first deletes all of the user's
    tokens, refresh deletes the presented token before storing its
    replacement.
    """

    @staticmethod
    def _require_credentials(email: str, password: str):
        if not email or not password:
            raise ValidationError("Email and password are required")

    @staticmethod
    def create_tokens(user: User, db: Session) -> Token:
        """
        Issues an access + refresh token pair and stores the refresh token.
        """
        access_token = TokenService.create_access_token(user.id, user.email)
        refresh_token, expires_at = TokenService.create_refresh_token(user.id, user.email)

        RefreshTokenService.create(db, user.id, refresh_token, expires_at)

        return Token(access_token=access_token, refresh_token=refresh_token)

    @staticmethod
    def register(email: str, password: str, db: Session) -> Tuple[User, Token]:
        """
        Creates a new user and signs them in.

        Flow:
        1. Validate email format and password strength
        2. Check the email is not taken
        3. Hash the password and store the user
        4. Issue tokens and store the refresh token
        """
        AuthService._require_credentials(email, password)

        if not validate_email_format(email):
            raise ValidationError("Invalid email format", {"field": "email"})

        if not validate_password_strength(password):
            raise ValidationError("Password must be at least 8 characters", {"field": "password"})

        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            logger.warning(
                "Registration attempt with existing email",
                extra={"email": email}
            )
            raise ConflictError("Email already registered", {"field": "email"})

        user = User(email=email, password_hash=get_password_hash(password))
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            db.rollback()
            raise ConflictError("Email already registered", {"field": "email"})
        db.refresh(user)

        tokens = AuthService.create_tokens(user, db)

        logger.info(
            "User registered successfully",
            extra={"user_id": user.id, "email": user.email}
        )
        return user, tokens

    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> User:
        AuthService._require_credentials(email, password)

        user = db.query(User).filter(User.email == email).first()

        if not user:
            logger.warning(
                "Login failed - user not found",
                extra={"email": email}
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not verify_password(password, user.password_hash):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id, "email": email}
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id, "email": email}
        )
        return user

    @staticmethod
    def login(email: str, password: str, db: Session) -> Tuple[User, Token]:
        """
        Verifies credentials and starts a new session.

        Any refresh token issued before this login is deleted, so only one
        session per user can be refreshed at a time.
        """
        user = AuthService.authenticate_user(email, password, db)

        revoked = RefreshTokenService.delete_all_for_user(db, user.id)
        tokens = AuthService.create_tokens(user, db)

        logger.info(
            "User logged in successfully",
            extra={"user_id": user.id, "email": user.email, "revoked_sessions": revoked}
        )
        return user, tokens

    @staticmethod
    def refresh(refresh_token: Optional[str], db: Session) -> Token:
        """
        Exchanges a refresh token for a new access + refresh pair.

        The presented token is single use: it is deleted before the new pair
        is stored, so presenting it a second time fails the lookup.

        Raises:
            UnauthorizedError: token missing, invalid, expired (signature or
                stored expiry), unknown, or consumed by a concurrent request
        """
        if not refresh_token:
            raise UnauthorizedError("Refresh token required")

        try:
            TokenService.decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        except UnauthorizedError as exc:
            logger.warning(
                "Refresh rejected - token failed verification",
                extra={"reason": exc.message}
            )
            raise UnauthorizedError("Invalid or expired refresh token")

        record = RefreshTokenService.find_by_token(db, refresh_token)
        if not record:
            logger.warning(
                "Refresh rejected - token not stored",
                extra=sanitize_log_data({"refresh_token": refresh_token})
            )
            raise UnauthorizedError("Refresh token not found")

        user = record.user

        # The stored expiry wins over the signed one; it may have been shortened
        if as_utc(record.expires_at) < utcnow():
            AuthService._discard(db, refresh_token)
            logger.warning(
                "Refresh rejected - stored token expired",
                extra={"user_id": user.id}
            )
            raise UnauthorizedError("Refresh token expired")

        try:
            RefreshTokenService.delete_by_token(db, refresh_token)
        except NotFoundError:
            logger.warning(
                "Refresh rejected - token consumed concurrently",
                extra={"user_id": user.id}
            )
            raise UnauthorizedError("Refresh token not found")

        tokens = AuthService.create_tokens(user, db)

        logger.info("Access token refreshed", extra={"user_id": user.id})
        return tokens

    @staticmethod
    def _discard(db: Session, refresh_token: str):
        try:
            RefreshTokenService.delete_by_token(db, refresh_token)
        except NotFoundError:
            pass  # already gone, which is the goal

    @staticmethod
    def logout(refresh_token: Optional[str], db: Session) -> None:
        """
        Revokes the presented refresh token.

        Never fails: a missing, already rotated or already deleted token and
        any store error are logged and ignored. The access token stays valid
        until it expires on its own.
        """
        if not refresh_token:
            logger.info("Logout without refresh token")
            return

        try:
            RefreshTokenService.delete_by_token(db, refresh_token)
        except NotFoundError as exc:
            logger.info(
                "Logout token already revoked",
                extra={"reason": exc.message}
            )
            return
        except SQLAlchemyError:
            db.rollback()
            logger.warning("Logout could not delete refresh token", exc_info=True)
            return

        logger.info("User logged out")

    @staticmethod
    def logout_all(user_id: str, db: Session) -> int:
        """Revokes every refresh token of the user."""
        revoked = RefreshTokenService.delete_all_for_user(db, user_id)
        logger.info(
            "User logged out of all sessions",
            extra={"user_id": user_id, "revoked_sessions": revoked}
        )
        return revoked
