"""
Error taxonomy for the Media Service.

Every error raised on purpose by the upload pipeline derives from
MediaServiceError; app.main renders them as ``ErrorResponse`` JSON bodies.
"""

from typing import Optional

from shared_schemas.common import ErrorResponse


class MediaServiceError(Exception):
    """Base class for errors with a known HTTP rendering."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.message, details=self.details)


class UploadValidationError(MediaServiceError):
    """Missing or malformed request field. Raised before any session mutation."""

    status_code = 400


class AdmissionRejected(MediaServiceError):
    """The concurrent session ceiling is reached. Backpressure, not a failure."""

    status_code = 429

    def __init__(self, max_sessions: int, retry_after: int):
        super().__init__(
            "Too many simultaneous uploads. Please wait.",
            f"At most {max_sessions} simultaneous chunked uploads are allowed",
        )
        self.max_sessions = max_sessions
        self.retry_after = retry_after

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.retry_after = self.retry_after
        return response


class SessionClosedError(MediaServiceError):
    """A chunk arrived for a session that already reached a terminal state."""

    status_code = 409


class ChunkTooLargeError(MediaServiceError):
    """A chunk or simple upload exceeds the request size ceiling."""

    status_code = 413


class ChunkPersistError(MediaServiceError):
    """Writing to scratch storage failed."""

    DISK_SPACE = "disk_space"
    MISSING_TEMP_FILE = "missing_temp_file"
    IO = "io"

    _MESSAGES = {
        DISK_SPACE: "Not enough disk space on the server.",
        MISSING_TEMP_FILE: "Temporary file lost during processing.",
        IO: "Failed to store the uploaded chunk.",
    }

    def __init__(self, category: str, details: Optional[str] = None):
        super().__init__(self._MESSAGES.get(category, self._MESSAGES[self.IO]), details)
        self.category = category

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.category = self.category
        return response


class AssemblyError(MediaServiceError):
    """Concatenating the chunks of a session failed."""

    status_code = 500


class StorageUploadError(MediaServiceError):
    """Pushing to, or reading from, the object store failed."""

    status_code = 502

    CREDENTIALS = "credentials"
    BUCKET_NOT_FOUND = "bucket_not_found"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UNKNOWN = "unknown"

    _MESSAGES = {
        CREDENTIALS: "Object storage authentication failed. Check the access keys.",
        BUCKET_NOT_FOUND: "Object storage bucket not found. Check the configuration.",
        TIMEOUT: "Timed out while talking to object storage.",
        NETWORK: "Could not reach object storage.",
        UNKNOWN: "Upload to object storage failed.",
    }

    def __init__(self, kind: str, details: Optional[str] = None):
        super().__init__(self._MESSAGES.get(kind, self._MESSAGES[self.UNKNOWN]), details)
        self.kind = kind

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.kind = self.kind
        return response
