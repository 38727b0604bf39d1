from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from structlog import get_logger

from marketplace.core.config import Settings, settings as default_settings
from marketplace.core.database import Database
from marketplace.core.errors import register_exception_handlers
from marketplace.core.logging import setup_logging
from marketplace.core.rate_limit import RequestRateLimiter
from marketplace.routers import auth, blogs, membership, properties
from marketplace.utils.file_storage import MediaStore

logger = get_logger()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.media.ensure_dirs()
        app.state.db.create_all()
        logger.info("Application started", app=settings.APP_NAME)
        try:
            yield
        finally:
            app.state.db.dispose()
            logger.info("Application stopped", app=settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Rental listing marketplace: properties, blogs and memberships",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Per-process resources; handlers reach them through app.state
    app.state.settings = settings
    app.state.db = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    app.state.media = MediaStore.from_settings(settings)
    app.state.rate_limiter = RequestRateLimiter.from_settings(settings)

    # Uploaded media is served from here
    app.mount(
        settings.MEDIA_URL_PREFIX,
        StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False),
        name="media",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(auth.router, prefix="/api")
    app.include_router(properties.router, prefix="/api")
    app.include_router(blogs.router, prefix="/api")
    app.include_router(membership.router, prefix="/api")

    @app.get("/")
    def root():
        return {
            "message": settings.APP_NAME,
            "version": "1.0.0",
            "status": "active",
            "documentation": "/docs",
        }

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "timestamp": datetime.now(timezone.utc),
        }

    return app


app = create_app()
