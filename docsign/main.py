"""
Signature Merge Service - Main FastAPI Application
Places browser-authored signatures onto PDF pages and publishes the result.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from docsign.config import get_settings, get_cors_origins
from docsign.utils.logging import setup_logging, RequestIdMiddleware
from docsign.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(
        environment=settings.environment,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )
    logger.info(f"Starting Signature Merge Service v{VERSION} ({settings.environment})")
    yield

    from docsign.supabase_client import _supabase_client
    if _supabase_client is not None:
        await _supabase_client.close()
    logger.info("Shutting down Signature Merge Service")


app = FastAPI(
    title="Signature Merge Service",
    description="""Merges e-signatures into PDF documents.

Signature boxes are authored in the browser as fractions of the page
(top-left origin) and projected here onto the PDF page box in points
(bottom-left origin). Images keep their aspect ratio inside the box.
""",
    version=VERSION,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "documents", "description": "Merge operations on stored documents"},
        {"name": "merge", "description": "Stateless merge and projection"},
        {"name": "health", "description": "Health check endpoints"},
    ],
)


from docsign.routers import health, merge, documents

# Middleware
app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_origin_regex=get_settings().allowed_origin_regex or None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "X-Request-ID",
        "X-Signatures-Applied",
        "X-Signatures-Skipped",
        "X-Signature-Count",
        "X-Texts-Applied",
        "Content-Disposition",
    ],
)

# Exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Routers
app.include_router(health.router)
app.include_router(merge.router)
app.include_router(documents.router)


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy", "version": VERSION}
