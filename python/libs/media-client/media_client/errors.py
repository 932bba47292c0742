"""
Client-side upload errors.
"""

from typing import Optional

import httpx


class MediaClientError(Exception):
    """Base class for upload client errors."""


class UploadFailedError(MediaClientError):
    """A file could not be uploaded. No retry is attempted."""

    def __init__(
        self,
        file_name: str,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(f"{file_name}: {message}")
        self.file_name = file_name
        self.message = message
        self.status_code = status_code
        self.details = details
        self.retry_after = retry_after

    @classmethod
    def from_response(cls, file_name: str, response: httpx.Response, context: str) -> "UploadFailedError":
        """Build from a non-2xx response, reading the service's {error, details} body when present."""
        error, details, retry_after = response.reason_phrase, None, None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error") or error
            details = body.get("details")
            retry_after = body.get("retryAfter")
        elif response.text:
            details = response.text

        return cls(
            file_name,
            f"{context} failed ({response.status_code}): {error}",
            status_code=response.status_code,
            details=details,
            retry_after=retry_after,
        )


class IncompleteUploadError(MediaClientError):
    """Every chunk was acknowledged but the service never returned the stored file."""

    def __init__(self, file_name: str, total_chunks: int):
        self.message = f"all {total_chunks} chunks sent but upload was not finalized"
        super().__init__(f"{file_name}: {self.message}")
        self.file_name = file_name
        self.total_chunks = total_chunks
