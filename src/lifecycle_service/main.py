"""Main FastAPI application for the practice lifecycle service."""

import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lifecycle_service.api.dependencies import get_practice_manager, set_practice_manager
from lifecycle_service.api.routes.alerts import router as alerts_router
from lifecycle_service.api.routes.cases import router as cases_router
from lifecycle_service.api.routes.customers import router as customers_router
from lifecycle_service.config import settings
from lifecycle_service.infrastructure.clients import HttpPracticeStore
from lifecycle_service.infrastructure.persistence import SQLPracticeStore
from lifecycle_service.models import HealthResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Practice Lifecycle Service",
    description="Customer and case lifecycle engine with derived alerts",
    version="1.0.0",
)

# Viewer identity comes from X-User-* headers set by the API Gateway
logger.info("Service trusts X-User-* headers from API Gateway (no JWT validation)")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(customers_router)
app.include_router(cases_router)
app.include_router(alerts_router)


@app.on_event("startup")
async def startup():
    """Connect the configured store and start the alert poll."""
    logger.info(f"Starting {settings.service_name} on port {settings.port}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Storage: {settings.storage_type}")

    manager = await get_practice_manager()
    store = manager.store
    try:
        if isinstance(store, SQLPracticeStore):
            # Verify connection with retry logic (database may still be starting)
            await store.db.verify_connection()
            # Alembic migrations are the primary path; create_tables covers local runs
            await store.db.create_tables()
            logger.info("Database initialized successfully")
        elif isinstance(store, HttpPracticeStore):
            await store.verify_connection()
    except Exception as e:
        logger.error(f"Failed to initialize store: {e}")
        raise

    await manager.start()


@app.on_event("shutdown")
async def shutdown():
    """Clean up resources on shutdown."""
    logger.info("Shutting down service")
    manager = await get_practice_manager()
    await manager.close()
    set_practice_manager(None)


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="""
Returns the health status of the lifecycle service.

**Response Example**:
```json
{
  "status": "healthy",
  "service": "practice-lifecycle-service",
  "version": "1.0.0",
  "storage": "inmemory"
}
```

**Storage**: No store query (reports the configured store type only)
**Authorization**: None required (public endpoint)
    """,
    responses={
        200: {"description": "Service is healthy and operational"},
    },
)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        service=settings.service_name,
        version="1.0.0",
        storage=settings.storage_type,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lifecycle_service.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.environment == "development",
    )
