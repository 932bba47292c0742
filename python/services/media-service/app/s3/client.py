"""
Backblaze B2 client wrapper (S3-compatible API).
Handles uploads, listing, presigned URLs and public URL construction, and
translates botocore failures into StorageUploadError kinds.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, Dict, Optional, Tuple

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)

from app.core.config import settings
from app.core.exceptions import StorageUploadError
from app.s3.config import MAX_CONCURRENCY, MAX_KEYS_PER_PAGE, MULTIPART_CHUNKSIZE, MULTIPART_THRESHOLD

logger = logging.getLogger(__name__)

CREDENTIAL_ERROR_CODES = {
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "AccessDenied",
    "InvalidToken",
    "ExpiredToken",
    "Unauthorized",
    "401",
    "403",
}
BUCKET_ERROR_CODES = {"NoSuchBucket", "404"}


def classify_storage_error(error: Exception) -> str:
    """
    Map an exception raised by boto3 to a StorageUploadError kind.

    Structured codes and exception types are checked first; B2 does not
    always send them, so message patterns are the fallback.
    """
    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return StorageUploadError.CREDENTIALS
    if isinstance(error, (ConnectTimeoutError, ReadTimeoutError, asyncio.TimeoutError, TimeoutError)):
        return StorageUploadError.TIMEOUT
    if isinstance(error, EndpointConnectionError):
        return StorageUploadError.NETWORK

    if isinstance(error, ClientError):
        code = str(error.response.get("Error", {}).get("Code", ""))
        if code in CREDENTIAL_ERROR_CODES:
            return StorageUploadError.CREDENTIALS
        if code in BUCKET_ERROR_CODES:
            return StorageUploadError.BUCKET_NOT_FOUND
        if code in ("RequestTimeout", "RequestTimeoutException"):
            return StorageUploadError.TIMEOUT

    message = str(error).lower()
    if "credential" in message or "access key" in message or "signature" in message:
        return StorageUploadError.CREDENTIALS
    if "bucket" in message:
        return StorageUploadError.BUCKET_NOT_FOUND
    if "timeout" in message or "timed out" in message:
        return StorageUploadError.TIMEOUT
    if "connect" in message or "network" in message or isinstance(error, (BotoCoreError, ConnectionError)):
        return StorageUploadError.NETWORK
    return StorageUploadError.UNKNOWN


def to_storage_error(error: Exception) -> StorageUploadError:
    return StorageUploadError(classify_storage_error(error), str(error))


class S3Client:
    """Wrapper for B2 bucket operations."""

    def __init__(self, client=None, bucket: Optional[str] = None, public_url: Optional[str] = None):
        """
        Initialize S3 client with B2 configuration.

        Args:
            client: Pre-built boto3 S3 client (tests inject a mock)
            bucket: Bucket name, defaults to B2_BUCKET_NAME
            public_url: Public base URL, defaults to B2_PUBLIC_URL
        """
        self.client = client or boto3.client(
            's3',
            endpoint_url=settings.B2_ENDPOINT,
            aws_access_key_id=settings.B2_APPLICATION_KEY_ID,
            aws_secret_access_key=settings.B2_APPLICATION_KEY,
            config=Config(signature_version='s3v4', s3={'addressing_style': 'path'}),  # B2 needs path style
            region_name=settings.B2_REGION,
        )
        self.bucket = bucket or settings.B2_BUCKET_NAME
        self.public_url = (public_url or settings.B2_PUBLIC_URL).rstrip("/")

        # Single-worker executor for uploads (prevents thread explosion)
        self.upload_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="s3-upload")

        logger.info(f"[S3] Client initialized for bucket: {self.bucket}")

    def upload_fileobj(
        self,
        key: str,
        file_obj: BinaryIO,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Upload a file-like object to the bucket.

        Args:
            key: Object key
            file_obj: File-like object positioned at the start of the data
            content_type: MIME type stored on the object
            metadata: Optional user metadata (x-amz-meta-*)

        Raises:
            StorageUploadError: If the upload fails, with a classified kind
        """
        extra_args = {'ContentType': content_type}
        if metadata:
            extra_args['Metadata'] = metadata

        config = TransferConfig(
            multipart_threshold=MULTIPART_THRESHOLD,
            multipart_chunksize=MULTIPART_CHUNKSIZE,
            max_concurrency=MAX_CONCURRENCY,
            use_threads=False  # We're running in executor already
        )

        try:
            self.client.upload_fileobj(
                file_obj,
                self.bucket,
                key,
                ExtraArgs=extra_args,
                Config=config
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[S3] Failed to upload {self.bucket}/{key}: {e}")
            raise to_storage_error(e) from e

        logger.info(f"[S3] Uploaded file: {self.bucket}/{key}")

    async def upload_path(
        self,
        key: str,
        path: str,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> None:
        """Upload a local file without blocking the event loop."""
        def _upload():
            with open(path, "rb") as f:
                self.upload_fileobj(key, f, content_type, metadata)

        await asyncio.get_running_loop().run_in_executor(self.upload_executor, _upload)

    async def upload_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> None:
        """Upload an in-memory payload without blocking the event loop."""
        def _upload():
            try:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                    Metadata=metadata or {}
                )
            except (ClientError, BotoCoreError) as e:
                logger.error(f"[S3] Failed to put {self.bucket}/{key}: {e}")
                raise to_storage_error(e) from e
            logger.info(f"[S3] Uploaded object: {self.bucket}/{key} ({len(data)} bytes)")

        await asyncio.get_running_loop().run_in_executor(self.upload_executor, _upload)

    def list_page(
        self,
        prefix: str,
        limit: int,
        cursor: Optional[str] = None
    ) -> Tuple[list, Optional[str]]:
        """
        List one page of objects under a prefix.

        Args:
            prefix: Key prefix (e.g., "photos/")
            limit: Maximum number of keys to return
            cursor: Continuation token from a previous page

        Returns:
            (objects, next_cursor) where objects are the raw S3 entries and
            next_cursor is None on the last page

        Raises:
            StorageUploadError: If listing fails
        """
        params = {
            'Bucket': self.bucket,
            'Prefix': prefix,
            'MaxKeys': min(limit, MAX_KEYS_PER_PAGE),
        }
        if cursor:
            params['ContinuationToken'] = cursor

        try:
            response = self.client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[S3] Failed to list {self.bucket}/{prefix}: {e}")
            raise to_storage_error(e) from e

        objects = [obj for obj in response.get('Contents', []) if obj.get('Key') != prefix]
        next_cursor = response.get('NextContinuationToken') if response.get('IsTruncated') else None
        return objects, next_cursor

    def generate_presigned_upload_url(
        self,
        key: str,
        content_type: str,
        expiration: int = 3600
    ) -> str:
        """
        Generate a presigned PUT URL for a direct browser upload.

        Args:
            key: Object key
            content_type: Content-Type the browser must send
            expiration: URL expiration time in seconds (default: 1 hour)

        Returns:
            Presigned URL string

        Raises:
            StorageUploadError: If URL generation fails
        """
        try:
            url = self.client.generate_presigned_url(
                'put_object',
                Params={'Bucket': self.bucket, 'Key': key, 'ContentType': content_type},
                ExpiresIn=expiration
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[S3] Failed to generate presigned URL for {self.bucket}/{key}: {e}")
            raise to_storage_error(e) from e

        logger.info(f"[S3] Generated presigned URL for {self.bucket}/{key} (expires in {expiration}s)")
        return url

    def get_public_url(self, key: str) -> str:
        """Direct public URL for an object."""
        return f"{self.public_url}/{key}"

    def check_connection(self) -> None:
        """Raise StorageUploadError if the bucket is unreachable."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            raise to_storage_error(e) from e
