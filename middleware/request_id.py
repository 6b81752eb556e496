"""
Request ID middleware.

Each request gets an id (the client's X-Request-ID, or a fresh UUID). It is
stored on request.state, echoed in the response headers, and stamped onto
every log record emitted while the request is being handled.
"""

import uuid
import logging
from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[str] = ContextVar("request_id", default="no-request-id")


def _install_record_factory():
    base_factory = logging.getLogRecordFactory()

    if getattr(base_factory, "_stamps_request_id", False):
        return

    def record_factory(*args, **kwargs):
        record = base_factory(*args, **kwargs)
        record.request_id = _request_id.get()
        return record

    record_factory._stamps_request_id = True
    logging.setLogRecordFactory(record_factory)


class RequestIDMiddleware(BaseHTTPMiddleware):

    def __init__(self, app):
        super().__init__(app)
        _install_record_factory()

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        request.state.request_id = request_id
        token = _request_id.set(request_id)

        try:
            response: Response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_id.reset(token)


def get_request_id(request: Request) -> str:
    """
    Returns the id assigned to this request, or "no-request-id" when the
    middleware did not run (e.g. in unit tests calling handlers directly).
    """
    return getattr(request.state, "request_id", "no-request-id")
