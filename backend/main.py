import time
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, settings
from database import init_db, close_db
from auth.jwt_service import TokenIssuer, TokenVerifier
from auth.openid_service import OpenIDValidator
from routers import auth_router, profile_router
from utils.logging_utils import setup_logging, get_logger
from utils.audit import audit
from utils.errors import error_body

# Configure logging (INFO by default, override with LOG_LEVEL)
setup_logging(level=settings.LOG_LEVEL, use_color=settings.DEBUG)
logger = get_logger(__name__)


def configure_auth(app: FastAPI, cfg: Settings) -> None:
    """
    Build the token and OpenID services once and attach them to ``app.state``.

    The signing secret is read here and nowhere else.
    """
    app.state.token_issuer = TokenIssuer(
        secret=cfg.JWT_SECRET,
        access_ttl=timedelta(minutes=cfg.JWT_ACCESS_TTL_MINUTES),
        refresh_ttl=timedelta(days=cfg.JWT_REFRESH_TTL_DAYS),
        algorithm=cfg.JWT_ALGORITHM,
    )
    app.state.token_verifier = TokenVerifier(
        secret=cfg.JWT_SECRET,
        algorithm=cfg.JWT_ALGORITHM,
    )
    app.state.openid_validator = OpenIDValidator(
        provider_url=cfg.STEAM_OPENID_URL,
        return_url=cfg.OPENID_RETURN_URL,
        timeout=cfg.OPENID_TIMEOUT_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("=" * 60)
    logger.info(f"{settings.APP_NAME.upper()} STARTING UP")
    logger.info(f"App: {settings.APP_NAME} v{settings.APP_VERSION}")

    start = time.perf_counter()
    await init_db()
    logger.info(
        f"Database initialized in {(time.perf_counter() - start) * 1000:.1f}ms"
    )

    from services.health import run_health_checks
    health = await run_health_checks()
    for check in health.checks:
        status_icon = "+" if check.status == "ok" else "!"
        detail = f" ({check.message})" if check.message else ""
        logger.info(f"  {status_icon} {check.name}: {check.status}{detail}")
    if health.status != "healthy":
        logger.warning(f"STARTUP HEALTH: {health.status.upper()} - some checks failed")

    logger.info(
        f"Token TTLs: access={settings.JWT_ACCESS_TTL_MINUTES}m "
        f"refresh={settings.JWT_REFRESH_TTL_DAYS}d ({settings.JWT_ALGORITHM})"
    )
    logger.info("STARTUP COMPLETE - Ready to accept requests")
    logger.info("=" * 60)

    yield

    logger.info(f"{settings.APP_NAME.upper()} SHUTTING DOWN")
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)
configure_auth(app, settings)


# ── Error rendering ───────────────────────────────────────────────────

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as ``{"message": ..., "code"?: ...}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, getattr(exc, "code", None)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """
    Return 400 with per-field messages when request validation fails.
    """
    errors = []
    for error in exc.errors():
        # Build a dotted field path (skip the top-level "body"/"query" prefix)
        loc_parts = [str(x) for x in error.get("loc", [])]
        if loc_parts and loc_parts[0] in ("body", "query", "path", "header"):
            loc_parts = loc_parts[1:]
        field = ".".join(loc_parts) if loc_parts else "unknown"

        msg = error.get("msg", "Validation error")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]

        errors.append({"field": field, "message": msg})

    body = error_body("Validation failed")
    body["errors"] = errors
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


# ── Request ID + request logging middleware ───────────────────────────

@app.middleware("http")
async def request_lifecycle(request: Request, call_next):
    """Assign a request ID, log timing, and add the ID to response headers."""
    request_id = str(uuid.uuid4())
    audit.set_request_id(request_id)

    start_time = time.perf_counter()
    logger.debug(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    # Query strings are not logged: they carry OpenID signatures.
    duration_ms = (time.perf_counter() - start_time) * 1000
    status_indicator = "+" if response.status_code < 400 else "!"
    logger.info(
        f"{status_indicator} {request.method} {request.url.path}",
        extra={
            "request_id": request_id[:8],
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )

    response.headers["X-Request-ID"] = request_id
    return response


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

# Include routers
app.include_router(auth_router)
app.include_router(profile_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint with component status breakdown."""
    from services.health import run_health_checks
    health = await run_health_checks()
    status_code = 200 if health.status in ("healthy", "degraded") else 503
    return JSONResponse(content=health.model_dump(), status_code=status_code)


@app.get("/api", tags=["root"])
async def api_root():
    """API root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "openapi": "/openapi.json",
        "endpoints": {
            "auth": "/api/auth",
            "profile": "/api/profile",
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        reload=settings.DEBUG,
    )
