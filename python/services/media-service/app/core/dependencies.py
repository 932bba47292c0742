"""
Shared dependencies for FastAPI endpoints.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends

from app.core.config import settings
from app.s3.client import S3Client
from app.uploads.janitor import TempJanitor
from app.uploads.publisher import MediaPublisher
from app.uploads.receiver import ChunkReceiver
from app.uploads.scratch import ScratchStorage
from app.uploads.session_registry import SessionRegistry
from app.uploads.simple import SimpleUploader

logger = logging.getLogger(__name__)


@dataclass
class MediaServices:
    """Process-wide upload components, wired together once."""
    s3: S3Client
    scratch: ScratchStorage
    registry: SessionRegistry
    publisher: MediaPublisher
    janitor: TempJanitor
    receiver: ChunkReceiver
    simple: SimpleUploader


def build_services(s3: Optional[S3Client] = None, scratch_root: Optional[str] = None) -> MediaServices:
    """
    Wire the upload pipeline.

    Args:
        s3: S3 client to use (defaults to one built from settings)
        scratch_root: Scratch directory (defaults to UPLOAD_TEMP_DIR)
    """
    s3 = s3 or S3Client()
    scratch = ScratchStorage(scratch_root or settings.UPLOAD_TEMP_DIR)
    scratch.ensure_root()

    registry = SessionRegistry(
        scratch,
        max_sessions=settings.MAX_CONCURRENT_SESSIONS,
        retry_after=settings.SESSION_RETRY_AFTER_SECONDS,
    )
    publisher = MediaPublisher(s3)
    janitor = TempJanitor(
        scratch,
        registry,
        max_age_seconds=settings.JANITOR_MAX_AGE_SECONDS,
        interval_seconds=settings.JANITOR_INTERVAL_SECONDS,
    )
    receiver = ChunkReceiver(
        registry,
        scratch,
        publisher,
        janitor,
        max_chunk_bytes=settings.MAX_CHUNK_BYTES,
    )
    simple = SimpleUploader(publisher, max_bytes=settings.MAX_SIMPLE_UPLOAD_BYTES)

    logger.info(f"Upload pipeline ready (scratch={scratch.root}, max_sessions={registry.max_sessions})")
    return MediaServices(
        s3=s3,
        scratch=scratch,
        registry=registry,
        publisher=publisher,
        janitor=janitor,
        receiver=receiver,
        simple=simple,
    )


# Services singleton
_services: Optional[MediaServices] = None


def get_services() -> MediaServices:
    """
    Get or create the global upload services.
    Tests replace this through app.dependency_overrides.
    """
    global _services
    if _services is None:
        _services = build_services()
    return _services


# Dependency annotation
Services = Annotated[MediaServices, Depends(get_services)]
