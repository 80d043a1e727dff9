"""
Favsync - FastAPI Application
Keeps the PJN favourites table in step with the scraper's case records.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from favsync.core.config import get_settings
from favsync.core.database import init_db, close_db
from favsync.routers import pjn_sync


# =============================================================================
# Logging Setup
# =============================================================================

def setup_logging():
    """Configure logging based on settings."""
    from favsync.core.logging_config import setup_logging as configure_logging
    settings = get_settings()
    configure_logging(
        level=settings.log_level.upper(),
        json_format=settings.log_json_format,
        log_file=Path(settings.log_file) if settings.log_file else None,
    )


# =============================================================================
# Lifespan (Startup/Shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create destination tables on startup, release connections on shutdown."""
    settings = get_settings()
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("STARTING %s v%s", settings.app_name, settings.app_version)
    logger.info("   Batch size: %s | Batch timeout: %ss",
                settings.sync_batch_size, settings.sync_batch_timeout_seconds)
    logger.info("   Sync secret: %s", "configured" if settings.pjn_sync_secret else "disabled")
    logger.info("=" * 60)

    if settings.database_url:
        await init_db()
        logger.info("   Destination tables ready")
    else:
        # Keep serving so the sync endpoint can report the configuration error
        logger.warning("   DATABASE_URL not set; sync requests will be rejected")

    yield

    await close_db()
    logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Application factory.
    Creates and configures the FastAPI application.
    """
    settings = get_settings()
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description=settings.app_description,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.enable_docs else None,
        redoc_url="/api/redoc" if settings.enable_docs else None,
        openapi_url="/api/openapi.json" if settings.enable_docs else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    app.include_router(pjn_sync.router)

    @app.get("/api/health", tags=["Health"])
    async def health():
        return {"status": "ok", "version": settings.app_version}

    return app


app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "favsync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
