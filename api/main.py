"""Bookstore discount API: FastAPI entry point.

Registers lifecycle hooks and routers. Each vertical adds its own router
under /api/{vertical}/.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from core.observability.logging_setup import setup_logging
from verticals.bookstore.service import DiscountService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

VERSION = "0.1.0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the discount service once, before any request is served."""
    setup_logging(LOG_LEVEL)
    if getattr(app.state, "discount_service", None) is None:
        app.state.discount_service = DiscountService()
    logger.info("Bookstore discount API started")
    yield
    logger.info("Bookstore discount API shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Bookstore Discounts",
    description="Configurable rule engine for bookstore checkout discounts",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Routers: verticals register here
# ---------------------------------------------------------------------------

from verticals.bookstore.router import (  # noqa: E402
    request_validation_handler,
    router as bookstore_router,
)

app.include_router(bookstore_router, prefix="/api/bookstore", tags=["Bookstore"])
app.add_exception_handler(RequestValidationError, request_validation_handler)


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/")
async def root():
    return {
        "name": "Bookstore Discounts",
        "version": VERSION,
        "docs": "/docs",
        "verticals": ["bookstore"],
    }
