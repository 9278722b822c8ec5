"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import router
from .api.dependencies import ServiceContainer, build_container
from .config import Settings, get_settings
from .errors import ComplianceError, SelfExclusionError, ValidationError
from . import __version__

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    # Startup
    settings = app.state.services.settings
    logger.info(f"Starting {settings.app_name} ({settings.environment})...")
    logger.info(f"API ready - Version {__version__}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    onboarding = app.state.services.onboarding
    clients = (onboarding.journey.client, onboarding.checker.client, onboarding.remote_config.source)
    for client in clients:
        aclose = getattr(client, "aclose", None)
        if aclose is not None:
            await aclose()


async def compliance_error_handler(request: Request, exc: ComplianceError) -> JSONResponse:
    """Render service errors as {error, message[, details]}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")

    content = {"error": exc.error, "message": exc.message}
    if isinstance(exc, SelfExclusionError):
        content["self_excluded"] = True
    elif not isinstance(exc, ValidationError) and exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[ServiceContainer] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="""
## Compliance Verification API

Onboarding checks for a regulated gambling platform.

### Features
- **Self-Exclusion Screening**: Every signup is checked against the national registry
- **Identity Verification**: Journeys with the identity provider, including document upload
- **Bulk Recheck**: Periodic re-verification of the whole user base

### Quick Start
1. Use `/health` to check API status
2. Use `POST /users` to screen and create a user
3. Use `/verification/state` to poll an identity journey
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Services live on app.state; the lifespan only closes provider clients
    app.state.services = services or build_container(settings)

    # Configure CORS - restrict to allowed frontend origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ComplianceError, compliance_error_handler)

    # Include routes
    app.include_router(router, prefix="/api/v1")

    # Root redirect to docs
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.app_name,
            "version": __version__,
            "docs": "/docs"
        }

    return app


# Create app instance
app = create_app()
