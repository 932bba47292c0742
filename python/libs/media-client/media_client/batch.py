"""
Batch uploads with per-file failure isolation.

Files are uploaded one after another; a failing file is recorded and the
batch moves on. Progress is reported across the whole batch in requests
(one per simple file, one per chunk otherwise).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from shared_schemas.media_service import UploadedMedia
from media_client.errors import MediaClientError
from media_client.router import MediaUploadClient
from media_client.sources import UploadSource

logger = logging.getLogger(__name__)

# Called with (requests done, requests total) across the batch
BatchProgressCallback = Callable[[int, int], None]


class BatchOutcome(str, Enum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class FileFailure:
    file_name: str
    error: str


@dataclass
class BatchUploadResult:
    """Per-file outcomes of a batch."""

    total_files: int
    uploaded: List[UploadedMedia] = field(default_factory=list)
    failures: List[FileFailure] = field(default_factory=list)

    @property
    def outcome(self) -> BatchOutcome:
        if not self.failures:
            return BatchOutcome.ALL_SUCCEEDED
        if self.uploaded:
            return BatchOutcome.PARTIAL
        return BatchOutcome.FAILED

    @property
    def should_refresh(self) -> bool:
        """The gallery listing changed if anything was stored."""
        return bool(self.uploaded)

    def summary(self) -> str:
        """Consolidated message for the guest."""
        if self.outcome == BatchOutcome.ALL_SUCCEEDED:
            return f"{len(self.uploaded)} file(s) uploaded successfully!"

        failed_lines = "\n".join(f'"{failure.file_name}": {failure.error}' for failure in self.failures)
        if self.outcome == BatchOutcome.PARTIAL:
            return (
                f"Mixed result: {len(self.uploaded)} file(s) uploaded, "
                f"{len(self.failures)} failed:\n{failed_lines}"
            )
        return f"All uploads failed:\n{failed_lines}"


async def upload_batch(
    uploader: MediaUploadClient,
    sources: Sequence[UploadSource],
    progress: Optional[BatchProgressCallback] = None,
) -> BatchUploadResult:
    """
    Upload several files, isolating failures per file.

    Args:
        uploader: Routing upload client
        sources: Files in upload order
        progress: Called with cumulative (done, total) request counts

    Returns:
        BatchUploadResult with successes and itemized failures
    """
    result = BatchUploadResult(total_files=len(sources))
    planned = [uploader.planned_requests(source) for source in sources]
    total_requests = sum(planned)
    done_before = 0

    for position, (source, requests) in enumerate(zip(sources, planned), start=1):
        logger.info(f"Batch upload {position}/{len(sources)}: {source.name}")

        def file_progress(done: int, _total: int, offset: int = done_before) -> None:
            if progress:
                progress(offset + done, total_requests)

        try:
            media = await uploader.upload(source, progress=file_progress)
            result.uploaded.append(media)
        except (MediaClientError, OSError, ValueError) as e:
            logger.error(f"Upload of {source.name} failed: {e}")
            result.failures.append(FileFailure(file_name=source.name, error=getattr(e, "message", str(e))))

        # Failed files still count as processed so progress reaches the end
        done_before += requests
        if progress:
            progress(done_before, total_requests)

    logger.info(
        f"Batch finished: {len(result.uploaded)} uploaded, {len(result.failures)} failed ({result.outcome.value})"
    )
    return result
