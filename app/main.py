"""
Sourcing Client Portal API - Main application entry point.

Company dashboards issue magic links; clients use them to reach their
quotations, payment methods, payments and shipments without an account.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.database import Database
from app.exceptions import LinkDenied, StoreUnavailable
from app.api import auth, client_portal, magic_links

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

# One body for every link denial, whatever the reason
LINK_DENIED_BODY = {"detail": "Invalid or expired link"}


async def link_denied_handler(request: Request, exc: LinkDenied) -> JSONResponse:
    # Route template, not the URL: the URL carries the raw token
    route = request.scope.get("route")
    logger.warning(
        f"Portal access denied: reason={exc.reason.value} link={exc.link_id} "
        f"route={getattr(route, 'path', '?')} details={exc.details}"
    )
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=LINK_DENIED_BODY)


async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    logger.error(f"Store unavailable: {exc.message}", exc_info=exc.__cause__)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable"},
    )


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    When no database is given, one is created from settings at startup and
    disposed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        owns_database = app.state.database is None
        if owns_database:
            app.state.database = Database.from_settings(settings)
        logger.info(f"Starting {settings.app_name}...")

        yield

        if owns_database:
            await app.state.database.dispose()
            app.state.database = None
        logger.info(f"Shutting down {settings.app_name}...")

    app = FastAPI(
        title=settings.app_name,
        description="""
    ## Sourcing Client Portal API

    - **Magic links**: company staff issue scoped, expiring, revocable,
      usage-limited links for their clients
    - **Client portal**: clients view quotations, payment methods, payments
      and shipments through `/c/{token}/...` without an account

    ### Authentication
    Operator endpoints require a JWT. Use `/auth/login` to obtain a token.
    """,
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LinkDenied, link_denied_handler)
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)

    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
    app.include_router(magic_links.router, prefix="/magic-links", tags=["Magic Links"])
    app.include_router(client_portal.router)  # No auth, client access via magic link token

    @app.get("/", tags=["Health"])
    async def root():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": "1.0.0",
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Detailed health check."""
        try:
            await request.app.state.database.ping()
            database_status = "connected"
        except SQLAlchemyError as e:
            logger.error(f"Health check database ping failed: {e}")
            database_status = "unavailable"
        return {
            "status": "healthy" if database_status == "connected" else "degraded",
            "database": database_status,
        }

    return app


app = create_app()
