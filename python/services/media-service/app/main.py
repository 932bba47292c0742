"""
Media Service - Main Application
FastAPI app for wedding guest photo/video uploads backed by Backblaze B2.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared_schemas.common import ErrorResponse
from shared_schemas.media_service import HealthCheckResponse
from app.core.config import settings
from app.core.dependencies import Services, get_services
from app.core.exceptions import MediaServiceError
from app.core.middleware import add_body_size_limit_middleware
from app.api import media, uploads

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Runs on startup and shutdown.
    """
    # Startup
    logger.info("Starting Media Service...")

    services = get_services()
    services.janitor.start()

    # Reclaim whatever a previous process left in the scratch area
    try:
        await services.janitor.sweep()
    except Exception as e:
        logger.error(f"Initial scratch sweep failed: {e}")
        # Continue anyway - the background loop retries

    logger.info("Media Service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Media Service...")
    await services.janitor.stop()
    await services.registry.close_all()


# Create FastAPI app
app = FastAPI(
    title="Wedding Media Service",
    description="Guest photo and video uploads with chunked transfer for large files",
    version="1.0.0",
    lifespan=lifespan
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

add_body_size_limit_middleware(app)


# Include API routers
app.include_router(uploads.router)
app.include_router(media.router)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with service information."""
    return {
        "service": "Wedding Media Service",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "upload": "/api/upload (single request, small files)",
            "upload_chunk": "/api/upload-chunk (chunked, large files)",
            "photos": "/api/photos",
            "videos": "/api/videos",
            "presigned_url": "/api/presigned-url",
            "health": "/health"
        },
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc"
        }
    }


@app.get("/health", tags=["health"], response_model=HealthCheckResponse)
async def health_check(services: Services):
    """Health check endpoint."""
    try:
        # Test bucket access
        services.s3.check_connection()

        return HealthCheckResponse(
            status="healthy",
            s3_connection="ok",
            open_sessions=services.registry.count()
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "s3_connection": "failed"
            }
        )


@app.exception_handler(MediaServiceError)
async def media_service_exception_handler(request: Request, exc: MediaServiceError):
    """Render pipeline errors as ErrorResponse bodies."""
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc.message} ({exc.details})")
    else:
        logger.warning(f"{request.url.path} rejected ({exc.status_code}): {exc.message} ({exc.details})")

    headers = {}
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().to_content(),
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed fields are client errors, rendered like the others."""
    logger.warning(f"{request.url.path} rejected (400): {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error="Invalid request",
            details="; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
            )
        ).to_content()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error", details=str(exc)).to_content()
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.LOG_LEVEL.lower(),
        limit_concurrency=100
    )
