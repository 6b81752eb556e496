import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from routers import auth, tasks

# Import all models for SQLAlchemy relationship resolution
import models  # noqa: F401

from core.config import settings
from core.database import Base, SessionLocal, engine
from core.errors import AppError, DatabaseError, InternalError, ErrorCode, error_code_for_status
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, get_request_id
from services.refresh_token_service import RefreshTokenService
from utils.dates import utcnow
from utils.logger import get_logger, log_request

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        RefreshTokenService.delete_expired(db)
    finally:
        db.close()

    logger.info("Application startup complete", extra={"event": "startup"})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="TaskFlow API",
    description="Multi-user to-do list API with JWT sessions",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# Cookies are needed for the refresh endpoint, hence allow_credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status, duration and the
    authenticated user (set on request.state by get_current_user).
    """
    start_time = time.time()

    response = await call_next(request)

    duration = (time.time() - start_time) * 1000

    log_request(
        logger,
        request.method,
        request.url.path,
        response.status_code,
        duration,
        user_id=getattr(request.state, "user_id", None),
        extra={"client_ip": request.client.host if request.client else "unknown"}
    )

    return response


app.add_middleware(RequestIDMiddleware)


def error_response(status_code: int, message: str, code: ErrorCode, **extra) -> JSONResponse:
    content = {"error": message, "code": code.value}
    content.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(
            f"Application error: {exc.message}",
            extra={"path": request.url.path, "code": exc.code.value},
            exc_info=exc
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value")
        }
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request data",
        ErrorCode.VALIDATION_ERROR,
        details={"errors": errors}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = "Route not found" if exc.status_code == status.HTTP_404_NOT_FOUND else str(exc.detail)
    return error_response(
        exc.status_code,
        message,
        error_code_for_status(exc.status_code),
        path=request.url.path
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """
    Store failures never reach the client in detail; the full error is in
    the logs under the request id.
    """
    logger.error(
        f"Database error: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__
        },
        exc_info=exc
    )
    error = DatabaseError("Database operation failed", {"requestId": get_request_id(request)})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__
        },
        exc_info=exc
    )
    error = InternalError("Internal server error", {"requestId": get_request_id(request)})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/api/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "ok", "timestamp": utcnow().isoformat()}


app.include_router(auth.router)
app.include_router(tasks.router)
