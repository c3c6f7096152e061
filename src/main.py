"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Tests can pass their own Settings and Database

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.errors import install_exception_handlers
from .api.routes import admins, coaches, dashboard, health, notifications, payments, plans, subscriptions
from .config.settings import Settings, get_settings
from .infrastructure.database.client import Database, connect, mask_url

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup ensures the schema (when auto-create is on) and reports unsafe
    configuration. Shutdown releases the connection pool.
    """
    # Startup
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info(
        "Super Sheets Admin API starting",
        extra={
            "version": settings.api_version,
            "environment": settings.environment,
            "database": mask_url(settings.database_url),
        }
    )

    if settings.database_auto_create:
        database.create_all()

    problems = settings.validate_required_fields()
    if problems:
        logger.error(
            "Invalid configuration",
            extra={"problems": problems}
        )
        # Refuse to serve production traffic with an insecure setup
        if settings.is_production:
            raise RuntimeError(f"Invalid configuration: {', '.join(problems)}")

    yield

    # Shutdown
    # A database passed in by the caller is the caller's to dispose
    if app.state.owns_database:
        database.dispose()
    logger.info("Super Sheets Admin API shutting down")


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application. Called once at
    startup in production, and once per test with a throwaway database.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    owns_database = database is None
    if owns_database:
        database = connect(
            settings.database_url,
            echo=settings.database_echo,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
        )

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Back office for Super Sheets coach subscriptions.

        ## Features

        - Manage coaches, plans and admin accounts
        - Book, renew and cancel subscriptions (a coach never holds two
          subscriptions on the same day)
        - Record payments and follow up on pending ones
        - Dashboard analytics and expiry notifications

        ## Authentication

        Log in with `POST /api/admins/login` and send the returned token
        as `Authorization: Bearer <token>` on every other request.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.owns_database = owns_database

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
    # Example: https://admin.supersheets.app
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_exception_handlers(app, show_details=settings.is_development)

    # Include routers
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(admins.router, prefix="/api/admins", tags=["Admins"])
    app.include_router(coaches.router, prefix="/api/coaches", tags=["Coaches"])
    app.include_router(plans.router, prefix="/api/plans", tags=["Plans"])
    app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"])
    app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])
    app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Super Sheets Admin API is running",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
