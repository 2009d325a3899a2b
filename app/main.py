"""
FastAPI Application Entrypoint.

Sets up CORS, the uniform error boundary, request observation and all
routers, initializes the database and starts the token-sweep scheduler.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.core.database import init_db
from app.core.errors import AppError, InternalError, RateLimitError
from app.core.observer import LoggingObserver
from app.core.scheduler import shutdown_scheduler, start_scheduler, sweep_expired_tokens
from app.api import health_router, auth_router, profile_router
from app.services.email_service import create_email_sender

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: init DB, sweep stale tokens, start scheduler."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    init_db()
    logger.info("Database tables initialized")

    sweep_expired_tokens()

    if not await app.state.email_sender.check_configuration():
        logger.warning("Email configuration invalid - magic links will not be delivered")

    start_scheduler()

    yield

    shutdown_scheduler()
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Passwordless authentication and mood/music preference storage for Rezo.",
    lifespan=lifespan,
)

# Collaborators selected once at startup
app.state.observer = LoggingObserver()
app.state.email_sender = create_email_sender(settings)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(dict.fromkeys([*settings.CORS_ORIGINS, settings.FRONTEND_URL])),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


@app.middleware("http")
async def observe_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000
    request.app.state.observer.request_completed(
        request.method, request.url.path, response.status_code, duration_ms
    )
    return response


# ─── Error boundary ─────────────────────────────────────────────

def _error_response(request: Request, status_code: int, body: dict, error_type: str, headers=None):
    request.app.state.observer.error_raised(error_type, status_code, request.url.path)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return _error_response(
        request, exc.status_code, exc.to_dict(debug=settings.DEBUG), exc.error_type, headers
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    body = {"error": "Invalid data", "status": 400}
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        body["details"] = f"{location}: {first.get('msg')}" if location else first.get("msg")
    return _error_response(request, 400, body, "VALIDATION_ERROR")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.url.path} not found"
    return _error_response(
        request, exc.status_code, {"error": message, "status": exc.status_code}, "HTTP_ERROR"
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = InternalError(details=str(exc))
    body = error.to_dict(debug=settings.DEBUG)
    if settings.DEBUG:
        body["type"] = type(exc).__name__
    return _error_response(request, error.status_code, body, error.error_type)


# Include all routers under /api
app.include_router(health_router, prefix=settings.API_PREFIX)
app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(profile_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "health": f"{settings.API_PREFIX}/health",
            "auth": f"{settings.API_PREFIX}/auth",
            "profile": f"{settings.API_PREFIX}/profile",
        },
    }
