# src/billing_core/main.py
"""Main entry point for the billing core application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from billing_core.api.v1 import (
    activity_router,
    admin_router,
    auth_router,
    billing_router,
    guards_router,
    system_router,
)
from billing_core.core.errors import BillingError, ErrorKind
from billing_core.core.settings import settings
from billing_core.services.gateway import get_gateway_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    yield
    await get_gateway_client().close()


# Initialize FastAPI app
app = FastAPI(
    title="Billing Core API",
    description="Rate limiting, replay protection and payment settlement",
    version=settings.app_version,
    lifespan=lifespan,
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


@app.exception_handler(BillingError)
async def billing_error_handler(_request: Request, exc: BillingError) -> JSONResponse:
    """Render structured errors as ``{code, message}`` with the mapped status."""
    if exc.kind is ErrorKind.INTERNAL:
        logger.error("Internal error surfaced to client: %s", exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
        headers=exc.headers(),
    )


# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(billing_router, prefix="/api/v1")
app.include_router(activity_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")
app.include_router(guards_router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("billing_core.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
