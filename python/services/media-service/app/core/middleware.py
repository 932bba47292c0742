"""
Request-layer guards.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared_schemas.common import ErrorResponse
from app.core.config import settings

logger = logging.getLogger(__name__)

# Multipart framing and form fields on top of the payload itself
MULTIPART_OVERHEAD_BYTES = settings.MAX_CHUNK_REQUEST_BYTES - settings.MAX_CHUNK_BYTES

BODY_LIMITS = {
    "/api/upload-chunk": settings.MAX_CHUNK_REQUEST_BYTES,
    "/api/upload": settings.MAX_SIMPLE_UPLOAD_BYTES + MULTIPART_OVERHEAD_BYTES,
}


def add_body_size_limit_middleware(app: FastAPI):
    """Reject oversized upload requests from Content-Length, before parsing."""

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        limit = BODY_LIMITS.get(request.url.path)
        content_length = request.headers.get("content-length")
        if limit is not None and content_length is not None and content_length.isdigit():
            if int(content_length) > limit:
                logger.warning(f"Rejected {request.url.path}: body of {content_length} bytes exceeds {limit}")
                return JSONResponse(
                    status_code=413,
                    content=ErrorResponse(
                        error="Request body too large",
                        details=f"{content_length} bytes exceeds the {limit} byte limit for {request.url.path}",
                    ).to_content()
                )
        return await call_next(request)
