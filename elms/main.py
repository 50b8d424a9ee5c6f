from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from elms.config import Settings, get_settings
from elms.api.v1.router import api_router
from elms.database import Database
from elms.database_init import startup_initialization


logger = logging.getLogger(__name__)


OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT bearer-token login and password change"},
    {"name": "Users", "description": "Profiles, user administration and teams"},
    {"name": "Leaves", "description": "Leave application and two-stage approval"},
    {"name": "Dashboard", "description": "Role-specific summaries"},
    {"name": "Notifications", "description": "In-app notifications"},
    {"name": "AI Assistant", "description": "Advisory AI helpers (chat, autofill, recommendations, conflicts)"},
]

API_DESCRIPTION = """
## Employee Leave Management System API

Employees apply for leave; team leads give first approval and admins final
approval, at which point the leave's days are deducted from the matching
balance.

### Authentication

All `/api` endpoints except `/api/auth/login` require a bearer token:
`Authorization: Bearer <token>`

### Errors

Errors are returned as `{"error": "<message>"}` with status 400, 401, 403,
404 or 500.
"""


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _error_response(status_code: int, message, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error_response(500, "Internal Server Error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    ``settings`` defaults to the cached environment settings; tests and
    scripts pass their own.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    database = Database(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        await startup_initialization(database, settings)
        yield
        await database.dispose()
        logger.info("Shutting down...")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=API_DESCRIPTION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=OPENAPI_TAGS,
    )
    app.state.settings = settings
    app.state.db = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint with database validation."""
        health_status = {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "database": "unknown"
            }
        }

        try:
            async with request.app.state.db.session() as session:
                await session.execute(text("SELECT 1"))
            health_status["checks"]["database"] = "connected"
        except Exception as e:
            logger.error(f"Health check database error: {e}")
            health_status["status"] = "unhealthy"
            health_status["checks"]["database"] = "error"

        if health_status["status"] == "unhealthy":
            return JSONResponse(status_code=503, content=health_status)

        return health_status

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()
