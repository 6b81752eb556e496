from passlib.context import CryptContext
from core.config import settings

bcrypt_context = CryptContext(
    schemes=['bcrypt'],
    deprecated='auto',
    bcrypt__rounds=settings.PASSWORD_HASH_ROUNDS
)


def get_password_hash(password: str) -> str:
    # Bcrypt only reads the first 72 bytes
    return bcrypt_context.hash(password[:72])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Compare a password with a stored bcrypt hash.

    Returns False on mismatch. A hash that passlib cannot identify raises
    ValueError, which is a data problem rather than a failed login.
    """
    return bcrypt_context.verify(plain_password[:72], hashed_password)
