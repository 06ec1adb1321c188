"""
FastAPI application entry point.

This is the main entry point for the FitLife Notifications API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.error_handler import setup_exception_handlers
from api.routers import (
    health_router,
    notifications_router,
    recommendations_router,
    scheduler_router,
)
from core.config import get_settings
from core.rate_limit import enforce_rate_limit
from core.redis import close_redis, init_redis
from database import close_database, get_session_factory, init_database, is_database_available
from services.email_service import EmailService
from services.notification_dispatcher import NotificationDispatcher
from services.recommendation_client import RecommendationClient
from services.scheduler import NotificationScheduler

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format=settings.log_format,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()

    # ============ Startup ============
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    # Redis only backs rate limiting; requests are not limited without it
    try:
        await init_redis()
    except Exception as e:
        logger.error(f"Failed to initialize Redis, rate limiting disabled: {e}")

    if settings.is_database_configured:
        try:
            await init_database()
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
    else:
        logger.warning("Database not configured, notification endpoints will return 503")

    app.state.recommendation_client = RecommendationClient.from_settings(settings)
    app.state.scheduler = None

    if is_database_available():
        dispatcher = NotificationDispatcher(EmailService(settings))
        app.state.scheduler = NotificationScheduler(
            get_session_factory(),
            app.state.recommendation_client,
            dispatcher,
            settings,
        )
        if settings.scheduler_enabled:
            await app.state.scheduler.start()
        else:
            logger.info("Scheduler disabled, tasks run only on demand")

    logger.info("Application startup complete")

    yield

    # ============ Shutdown ============
    logger.info("Shutting down application...")

    if app.state.scheduler is not None:
        await app.state.scheduler.stop()

    await close_redis()
    await close_database()

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Fitness notifications, scheduled reminders and AI recommendations",
        version=settings.app_version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ============ Middleware ============

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # ============ Exception Handlers ============
    setup_exception_handlers(app)

    # ============ Routers ============

    app.include_router(health_router, prefix="/api")

    rate_limited = [Depends(enforce_rate_limit)]
    app.include_router(notifications_router, prefix="/api", dependencies=rate_limited)
    app.include_router(recommendations_router, prefix="/api", dependencies=rate_limited)
    app.include_router(scheduler_router, prefix="/api", dependencies=rate_limited)

    # ============ Root Endpoint ============

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs" if not settings.is_production else None,
            "health": "/api/health",
        }

    return app


# Create application instance
app = create_app()


def run():
    """Run the application with uvicorn (for development)."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
