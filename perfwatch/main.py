"""
PerfWatch - Main Application Entry Point

FastAPI application exposing report ingestion, threshold configuration and
alert review for continuous benchmarking.
"""

from contextlib import asynccontextmanager
from typing import Any

import logging

from fastapi import FastAPI

from perfwatch import __version__
from perfwatch.api.routes import alerts, projects, reports, thresholds
from perfwatch.config import settings
from perfwatch.storage import create_store

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(settings.LOG_FILE)
        if settings.LOG_FILE
        else logging.NullHandler(),
    ],
)

# asyncpg logs every connection at INFO
logging.getLogger("asyncpg").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create (unless a test injected one) and open the store; close it on shutdown."""
    logger.info("🚀 PerfWatch starting up...")
    logger.info(f"🔧 Debug mode: {settings.APP_DEBUG}")

    if getattr(app.state, "store", None) is None:
        app.state.store = create_store()
    store = app.state.store

    logger.info(f"📊 Initializing {settings.STORAGE_BACKEND} store...")
    try:
        await store.initialize()
        logger.info("✅ Store initialized")
    except Exception as e:
        logger.error(f"❌ Failed to initialize store: {e}")
        logger.warning("⚠️  Application starting without a working store")

    yield

    logger.info("🛑 PerfWatch shutting down...")
    try:
        await store.close()
        logger.info("✅ Store closed")
    except Exception as e:
        logger.error(f"Error closing store: {e}")


app = FastAPI(
    title="PerfWatch",
    description="Continuous benchmarking: ingest benchmark reports and catch performance regressions",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)


@app.get("/health")
async def health_check():
    """Liveness plus a store probe; a failing store reports "degraded", not an error."""
    health_status: dict[str, Any] = {
        "status": "healthy",
        "service": "perfwatch",
        "version": __version__,
        "checks": {},
    }

    try:
        is_healthy = await app.state.store.is_healthy()
        health_status["checks"]["store"] = {
            "backend": settings.STORAGE_BACKEND,
            "status": "healthy" if is_healthy else "unhealthy",
        }
        if not is_healthy:
            health_status["status"] = "degraded"
    except Exception as e:
        health_status["checks"]["store"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    return health_status


app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
app.include_router(reports.router, prefix="/api/projects/{project}/reports", tags=["reports"])
app.include_router(
    thresholds.router, prefix="/api/projects/{project}/thresholds", tags=["thresholds"]
)
app.include_router(alerts.router, prefix="/api/projects/{project}/alerts", tags=["alerts"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "perfwatch.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.APP_RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
    )
