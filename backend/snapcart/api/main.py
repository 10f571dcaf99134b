"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes the routers and sets
up startup and shutdown.  At startup it initialises Sentry and the
database and resolves, once, whether the vision extraction provider is
configured.  Run it with ``uvicorn snapcart.api.main:app``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from snapcart.api.error_handlers import register_exception_handlers
from snapcart.api.routes.receipts import router as receipts_router
from snapcart.core.config import settings
from snapcart.core.database import init_db
from snapcart.core.observability import init_sentry
from snapcart.services.ocr_service import build_ocr_service

logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    app.state.ocr_service = build_ocr_service(settings)
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="SnapCart API",
    description="Receipt photo → extracted text → structured, stored expense",
    version="1.0.0",
    lifespan=lifespan,
)

env_is_dev = (settings.ENVIRONMENT or "development").lower() == "development"
allow_origins = ["*"] if env_is_dev else list(settings.BACKEND_CORS_ORIGINS or [])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=not env_is_dev,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(receipts_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "SnapCart", "version": "1.0.0", "status": "running"}


@app.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    """Health check endpoint (supports GET & HEAD)."""
    ocr = getattr(app.state, "ocr_service", None)
    return {"status": "healthy", "ai_provider_available": bool(ocr and ocr.ai_available)}
