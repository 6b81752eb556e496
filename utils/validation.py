import re

# Permissive syntactic check: one "@", non-empty local part and a dotted domain
EMAIL_PATTERN = re.compile(r'[^\s@]+@[^\s@]+\.[^\s@]+')

MIN_PASSWORD_LENGTH = 8


def validate_email_format(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.fullmatch(email) is not None


def validate_password_strength(password: str) -> bool:
    return password is not None and len(password) >= MIN_PASSWORD_LENGTH
