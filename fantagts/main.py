"""FantaGTS - FastAPI Backend.

Live sealed-bid auction for the club's fantasy tennis league.
"""

import logging
import os
import random
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .database import create_engine_from_settings, create_session_factory, init_db
from .api import api_router
from .api.routes import realtime
from .services.auction_engine import AuctionEngine
from .services.connections import ConnectionRegistry
from .services.errors import (
    AuctionError, ValidationError, StateConflictError, AuthorizationError,
    NotFound, PersistenceError,
)
from .services.gateway import PersistenceGateway
from .services.notifications import NotificationDispatcher
from .services.resolution import get_resolution_strategy

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = [
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFound, 404),
    (StateConflictError, 409),
    (PersistenceError, 503),
]


def build_engine(settings: Settings, gateway: PersistenceGateway) -> AuctionEngine:
    dispatcher = NotificationDispatcher(
        enabled=settings.push_enabled,
        timeout=settings.push_timeout_seconds,
    )
    return AuctionEngine(
        gateway=gateway,
        registry=ConnectionRegistry(gateway),
        dispatcher=dispatcher,
        strategy=get_resolution_strategy(settings.resolution_strategy, settings.shared_premium),
        rng=random.Random(settings.tie_break_seed),
        sub_auction_pause=settings.sub_auction_pause_seconds,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - startup and shutdown."""
        logger.info(f"Starting {settings.app_name} API...")

        db_engine = create_engine_from_settings(settings)
        await init_db(db_engine)
        gateway = PersistenceGateway(create_session_factory(db_engine), settings.initial_credits)

        app.state.settings = settings
        app.state.db_engine = db_engine
        app.state.gateway = gateway
        app.state.engine = build_engine(settings, gateway)
        logger.info("Database ready, auction engine in setup phase")

        yield

        logger.info(f"Shutting down {settings.app_name} API...")
        await app.state.engine.shutdown()
        await db_engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="""
    FantaGTS API - live auction for the club fantasy tennis league.

    Features:
    - Club teams, participants and position slots
    - Sealed-bid rounds resolved into repeated sub-auctions
    - Realtime bidding over WebSocket
    - Match results, substitutions and standings
    """,
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS configuration - allow local frontends and the deployed one
    cors_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    frontend_url = settings.frontend_url or os.environ.get("FRONTEND_URL")
    if frontend_url:
        cors_origins.append(frontend_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuctionError)
    async def auction_error_handler(request: Request, exc: AuctionError):
        status_code = 500
        for error_class, code in STATUS_BY_ERROR:
            if isinstance(exc, error_class):
                status_code = code
                break
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.reason}")
        return JSONResponse(status_code=status_code, content={"error": exc.code, "detail": exc.reason})

    # Include API routes
    app.include_router(api_router, prefix=f"/api/{settings.api_version}")
    app.include_router(realtime.router)

    @app.get("/")
    async def root():
        """Root endpoint - API info."""
        return {
            "name": settings.app_name,
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()


# For running with uvicorn directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fantagts.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8000)),
        reload=True,
    )
