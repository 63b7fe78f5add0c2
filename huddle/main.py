"""
Huddle - FastAPI Application

Presence-aware messaging relay: friend relationships, one conversation per
friend pair, live chat delivery, read receipts and WebRTC call signaling.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from huddle import __version__
from huddle.config import settings
from huddle.database import close_redis, init_redis
from huddle.middleware.rate_limit import RateLimitMiddleware
from huddle.routers import auth, users, websocket
from huddle.runtime import Hub

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    - Build the Hub (unless one was injected) and open its store
    - Connect Redis for session tracking when configured
    - Close both on shutdown
    """
    hub: Hub = getattr(app.state, "hub", None) or Hub.from_settings(settings)
    app.state.hub = hub

    await hub.start()
    await init_redis()
    logger.info(f"Huddle {__version__} ready ({hub.settings.store_backend} store)")

    yield

    await close_redis()
    await hub.stop()


def create_app(hub: Optional[Hub] = None) -> FastAPI:
    """Build the application; tests pass their own Hub."""
    config = hub.settings if hub is not None else settings

    app = FastAPI(
        title="Huddle API",
        description="""
        Huddle - real-time chat with presence and call signaling

        ## Transport
        Everything live goes over the WebSocket at `/ws`. The HTTP API only
        covers accounts, profiles and file uploads; authenticated endpoints
        take the caller's id in the `X-User-Id` header.
        """,
        version=__version__,
        lifespan=lifespan,
        debug=config.debug,
    )
    if hub is not None:
        app.state.hub = hub

    # =========================================================================
    # Middleware
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RateLimitMiddleware, limit=config.rate_limit_per_minute)

    # =========================================================================
    # Exception Handlers
    # =========================================================================

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Never leak internal error details to clients."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Something went wrong. Please try again."},
        )

    # =========================================================================
    # Routers
    # =========================================================================

    app.include_router(auth.router, prefix="/api", tags=["Authentication"])
    app.include_router(users.router, prefix="/api", tags=["Users"])
    app.include_router(websocket.router, prefix="/ws", tags=["WebSocket"])

    upload_path = config.upload_path
    upload_path.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=upload_path), name="uploads")

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint for load balancers and monitoring."""
        hub: Hub = request.app.state.hub
        return {
            "status": "healthy",
            "version": __version__,
            "online": len(hub.presence.online_ids()),
            "sessions": await hub.sessions.online_count(),
        }

    return app


app = create_app()
