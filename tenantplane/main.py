"""
Tenant control plane - HTTP entry point
Tenant signup, lookup and verification
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager
import structlog

from tenantplane.core.config import get_settings
from tenantplane.core.logging import configure_logging
from tenantplane.api import tenants

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    configure_logging(settings)
    logger.info(f"Initializing {settings.APP_NAME}")
    # Central tables are created by Alembic migrations (or `tenantplane central:init`)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Tenant lifecycle and database provisioning control plane",
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(tenants.router, prefix="/api/v1/tenants", tags=["tenants"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


def run() -> None:
    """Serve the API with uvicorn"""
    import uvicorn
    uvicorn.run(
        "tenantplane.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )


if __name__ == "__main__":
    run()
