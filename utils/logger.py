"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict, Optional


SENSITIVE_FIELDS = {
    'password', 'token', 'secret', 'authorization', 'cookie',
    'access_token', 'refresh_token', 'password_hash'
}


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove credentials from a dict before it is attached to a log record.

    Tokens keep their first 8 characters so a log line can still be matched
    to a cookie while debugging; passwords and secrets are fully redacted.
    Nested dicts are sanitized recursively.
    """
    sanitized = data.copy()

    for key, value in sanitized.items():
        lowered = key.lower()
        if any(sensitive in lowered for sensitive in SENSITIVE_FIELDS):
            if isinstance(value, str) and 'token' in lowered and len(value) > 8:
                sanitized[key] = f"{value[:8]}..."
            elif value is not None:
                sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    user_id: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None
):
    """
    Log an HTTP request in a structured format.

    The level follows the status code: ERROR for 5xx, WARNING for 4xx,
    INFO otherwise.

    Usage:
        log_request(logger, "POST", "/api/tasks", 201, 12.3, user_id="9b2c...")
    """
    log_data = {
        "http_method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
        "user_id": user_id or "anonymous",
    }

    if extra:
        log_data.update(sanitize_log_data(extra))

    message = f"{method} {path} - {status_code}"
    if status_code >= 500:
        logger.error(message, extra=log_data)
    elif status_code >= 400:
        logger.warning(message, extra=log_data)
    else:
        logger.info(message, extra=log_data)
