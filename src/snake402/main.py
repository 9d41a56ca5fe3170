# src/snake402/main.py
"""Main entry point for the Snake402 application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from snake402 import __version__
from snake402.api.v1 import (
    admin_router,
    leaderboard_router,
    payouts_router,
    players_router,
    sessions_router,
    system_router,
)
from snake402.core.errors import Snake402Error
from snake402.core.settings import settings
from snake402.db.time import utcnow
from snake402.services.container import ServiceContainer, build_services

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Snake402 API",
    description="Pay-per-play Snake with daily prize pool payouts",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(sessions_router, prefix="/api/v1")
app.include_router(leaderboard_router, prefix="/api/v1")
app.include_router(players_router, prefix="/api/v1")
app.include_router(payouts_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.exception_handler(Snake402Error)
async def handle_domain_error(request: Request, exc: Snake402Error) -> JSONResponse:
    """Render domain errors with their stable code."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "timestamp": utcnow().isoformat(),
        },
    )


@app.on_event("startup")
async def on_startup() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    services: ServiceContainer | None = getattr(app.state, "services", None)
    if services is None:
        from snake402.db.session import create_tables

        create_tables()
        services = build_services(settings)
        app.state.services = services
    await services.start()
    logger.info(
        "%s %s started (network=%s, sandbox=%s)",
        settings.app_name,
        __version__,
        settings.cdp_network,
        settings.sandbox_mode,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    services: ServiceContainer | None = getattr(app.state, "services", None)
    if services:
        await services.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok", "timestamp": utcnow().isoformat()}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Snake402 API",
        "version": __version__,
        "description": "Pay-per-play Snake with daily prize pool payouts",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("snake402.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
