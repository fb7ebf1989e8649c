"""Compliance Ledger - Main Application Entry Point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from compliance_ledger.api.routes import health_router, router as api_router
from compliance_ledger.api.routes.health import set_startup_time
from compliance_ledger.common.exceptions import register_exception_handlers
from compliance_ledger.core.config import settings
from compliance_ledger.core.logging import configure_logging

logger = structlog.get_logger(__name__)


# ============================================================================
# LIFESPAN
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "compliance_ledger_starting",
        version=settings.app_version,
        environment=settings.environment,
    )
    set_startup_time()

    yield

    logger.info("compliance_ledger_stopped")


# ============================================================================
# APP FACTORY
# ============================================================================


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        description="""
# Compliance Ledger

Immutable record of compliance decisions for onboarding and token issuance,
plus a unified, tamper-evident enterprise audit view.

## API Sections

- **Health**: Liveness and Prometheus metrics
- **Compliance Decisions**: Record, replace and query decisions
- **Enterprise Audit**: Aggregated audit log, summary, retention policy, export
        """,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_tags=[
            {"name": "Health", "description": "Health checks and metrics"},
            {"name": "Compliance Decisions", "description": "Compliance decision ledger"},
            {"name": "Enterprise Audit", "description": "Unified audit log and exports"},
        ],
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint - service info."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "operational",
            "environment": settings.environment,
            "docs": app.docs_url,
            "api": settings.api_prefix,
        }

    return app


app = create_app()
