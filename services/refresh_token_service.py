from datetime import datetime
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from core.errors import ConflictError, NotFoundError
from models.refresh_tokens import RefreshToken
from utils.dates import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)


class RefreshTokenService:
    """
    Persistence for outstanding refresh tokens.

    Every method commits on its own; the conditional DELETE in
    delete_by_token is what decides a race between two requests presenting
    the same token.
    """

    @staticmethod
    def create(db: Session, user_id: str, token: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(user_id=user_id, token=token, expires_at=expires_at)
        db.add(record)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Refresh token already exists")
        db.refresh(record)
        return record

    @staticmethod
    def find_by_token(db: Session, token: str) -> Optional[RefreshToken]:
        return (
            db.query(RefreshToken)
            .options(joinedload(RefreshToken.user))
            .filter(RefreshToken.token == token)
            .first()
        )

    @staticmethod
    def delete_by_token(db: Session, token: str) -> None:
        """
        Deletes one refresh token.

        Raises:
            NotFoundError: no row matched, e.g. the token was already rotated
                or logged out by a concurrent request
        """
        deleted = (
            db.query(RefreshToken)
            .filter(RefreshToken.token == token)
            .delete(synchronize_session="fetch")
        )
        db.commit()

        if deleted == 0:
            raise NotFoundError("Refresh token not found")

    @staticmethod
    def delete_all_for_user(db: Session, user_id: str) -> int:
        deleted = (
            db.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .delete(synchronize_session="fetch")
        )
        db.commit()
        return deleted

    @staticmethod
    def delete_expired(db: Session) -> int:
        """Sweep rows whose stored expiry has passed. Safe to run at any time."""
        deleted = (
            db.query(RefreshToken)
            .filter(RefreshToken.expires_at < utcnow())
            .delete(synchronize_session="fetch")
        )
        db.commit()

        if deleted:
            logger.info("Expired refresh tokens removed", extra={"count": deleted})
        return deleted
