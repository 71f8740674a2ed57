"""
ClaimTrack Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import logger
from app.api.routes import claim_status
from app.db import init_db
from app.services.claim_status import (
    ClaimNotFoundError,
    ClaimStatusError,
    ClaimValidationError,
    InvalidStatusError,
    InvalidTransitionError,
    StorageError,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    if settings.APP_ENV == "development":
        init_db()
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Insurance Claim Status Tracking",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API Routers
app.include_router(claim_status.router, prefix="/claim-status", tags=["Claim Status"])


# Domain error -> HTTP status; first match wins, so subclasses come first
ERROR_STATUS = (
    (ClaimNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (InvalidStatusError, status.HTTP_400_BAD_REQUEST),
    (ClaimValidationError, status.HTTP_400_BAD_REQUEST),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


@app.exception_handler(ClaimStatusError)
async def claim_status_error_handler(request: Request, exc: ClaimStatusError):
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    body = {"detail": exc.message}
    if isinstance(exc, ClaimValidationError):
        body["field"] = exc.field
    if isinstance(exc, StorageError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=body)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }
