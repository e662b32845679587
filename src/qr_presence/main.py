# src/qr_presence/main.py
"""Main entry point for the QR presence application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from qr_presence import __version__
from qr_presence.api import (
    attend_log_router,
    qr_router,
    session_router,
    system_router,
)
from qr_presence.core.errors import InvalidRequest
from qr_presence.core.settings import settings
from qr_presence.services.cipher import get_server_cipher
from qr_presence.services.generator import get_generator_registry

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="QR Presence API",
    description="Short-lived encrypted presence tokens with round-trip anomaly scoring",
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

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(qr_router, prefix="/api")
app.include_router(attend_log_router, prefix="/api")
app.include_router(system_router, prefix="/api")
app.include_router(session_router, prefix="/api")


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest) -> JSONResponse:
    """Reject malformed scan submissions with the legacy error body."""
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"ok": False, "error": exc.error_code},
    )


@app.on_event("startup")
async def on_startup() -> None:
    # Resolve the server key eagerly so a generated key is logged at boot.
    get_server_cipher()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_generator_registry().stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "description": "Short-lived encrypted presence tokens",
        "docs": "/docs",
    }


def run() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run(
        "qr_presence.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
