"""
HOMi Identity Service

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from homi.api.middleware.request_id import RequestIdMiddleware
from homi.api.v1 import router as api_v1_router
from homi.config import get_settings
from homi.database import close_db, init_db
from homi.kernel.identity.errors import AuthError, NotAuthenticatedError
from homi.logging_config import configure_logging, get_logger
from homi.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    HOMi Identity Service

    Accounts and credentials for the HOMi rental platform.

    ## Features

    - **Registration & login** by email or phone number
    - **Email verification** with single-use, time-limited links
    - **Identity verification** with the national ID encrypted at rest
    - **Password reset** and password change
    - **Google sign-in** with automatic account provisioning
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(RequestIdMiddleware)


def _request_id_headers(request: Request) -> dict:
    req_id = getattr(request.state, "request_id", None)
    return {"X-Request-ID": req_id} if req_id else {}


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    """Render domain errors as {success, message, code}."""
    headers = _request_id_headers(request)
    if isinstance(exc, NotAuthenticatedError):
        headers["WWW-Authenticate"] = "Bearer"
    content = exc.to_dict()
    if exc.status_code >= 500:
        content["request_id"] = getattr(request.state, "request_id", None)
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    headers = _request_id_headers(request)
    if exc.headers:
        headers.update(exc.headers)
    content = {
        "success": False,
        "message": exc.detail if isinstance(exc.detail, str) else "Request failed",
        "code": "HTTP_ERROR",
    }
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    content = {
        "success": False,
        "message": "Validation failed",
        "code": "VALIDATION_ERROR",
        "errors": errors,
    }
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=content,
        headers=_request_id_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
):
    """Handle unexpected exceptions. Details are only exposed in debug mode."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    content = {
        "success": False,
        "message": str(exc) if settings.debug else "Internal server error",
        "code": "INTERNAL_ERROR",
        "request_id": req_id,
    }
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_request_id_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(status="ok", version=settings.version)


app.include_router(
    api_v1_router,
    prefix=settings.api_prefix,
)


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "homi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
