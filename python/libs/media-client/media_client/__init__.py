"""
Upload client for the wedding media service.
Routes each file to the simple or chunked upload path and uploads batches
with per-file failure isolation.
"""

__version__ = "0.1.0"

from media_client.batch import BatchOutcome, BatchUploadResult, FileFailure, upload_batch  # noqa: F401
from media_client.chunked import ChunkRange, generate_upload_id, plan_chunks, upload_in_chunks  # noqa: F401
from media_client.errors import IncompleteUploadError, MediaClientError, UploadFailedError  # noqa: F401
from media_client.router import MediaUploadClient, UploadStrategy, choose_strategy, upload_simple  # noqa: F401
from media_client.sources import UploadSource  # noqa: F401
