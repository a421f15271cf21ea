"""
FastAPI application factory.

Startup sequence:
  1. Validate settings
  2. Check DB connectivity (warn on failure: do not crash, the load balancer will detect)
  3. Mount all API routers

Dev-mode notes:
  When DEV_SKIP_AUTH=true (development only):
    - A starlette middleware reads the X-Dev-User-ID header and sets a context
      variable so get_current_user() can authenticate without a Clerk token.
    - This middleware is NOT installed in staging/production.
"""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from citycare.core.config import get_settings
from citycare.core.db import check_db_connection
from citycare.core.errors import CityCareError
from citycare.core.security import set_dev_user_id
from citycare.api.v1.admin import router as admin_router
from citycare.api.v1.admins import router as admins_router
from citycare.api.v1.complaints import router as complaints_router
from citycare.api.v1.health import router as health_router
from citycare.api.v1.uploads import router as uploads_router

settings = get_settings()
logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.is_development else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting CityCare backend (env=%s)", settings.environment)
    db_ok = await check_db_connection()
    if db_ok:
        logger.info("Database connection: OK")
    else:
        logger.warning("Database connection: FAILED: check DB_HOST / credentials")

    if settings.auth_disabled:
        logger.warning(
            "DEV_SKIP_AUTH=true: Clerk token verification is DISABLED. "
            "This must never be enabled in staging or production."
        )

    yield

    logger.info("Shutting down CityCare backend")


def _validation_details(exc: RequestValidationError) -> tuple[str, list[str]]:
    details = []
    missing = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        details.append(f"{field}: {err.get('msg')}")
        if err.get("type") == "missing":
            missing.append(field)

    if missing:
        return f"{missing[0]} is required", details
    return "Validation failed", details


def create_app() -> FastAPI:
    app = FastAPI(
        title="CityCare Complaint API",
        version="1.0.0",
        description="Civic complaint reporting and management backend",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # ------------------------------------------------------------------ #
    # CORS: only the configured frontend outside development
    # ------------------------------------------------------------------ #
    origins = ["*"] if settings.is_development else [settings.frontend_base_url]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------ #
    # Dev-mode header middleware
    # ------------------------------------------------------------------ #
    if settings.auth_disabled:
        @app.middleware("http")
        async def dev_auth_middleware(request: Request, call_next):
            """
            Reads X-Dev-User-ID (an identity id string) and stores it in a
            context variable so get_current_user() can pick it up.
            """
            set_dev_user_id(request.headers.get("X-Dev-User-ID"))
            response = await call_next(request)
            return response

    # ------------------------------------------------------------------ #
    # Exception handlers
    # ------------------------------------------------------------------ #
    @app.exception_handler(CityCareError)
    async def domain_error_handler(request: Request, exc: CityCareError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.error, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message, details = _validation_details(exc)
        return JSONResponse(
            status_code=400,
            content={"error": "ValidationError", "message": message, "details": details},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "HTTPError", "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url)
        content = {"error": "InternalServerError", "message": "Internal server error"}
        if settings.is_development:
            content["trace"] = traceback.format_exception(exc)
        return JSONResponse(status_code=500, content=content)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(health_router)
    app.include_router(complaints_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")
    app.include_router(admins_router, prefix="/api/v1")
    app.include_router(uploads_router, prefix="/api/v1")

    return app


app = create_app()
