"""
Configuration management for the Media Service.
Loads environment variables using Pydantic Settings.
"""

import os
import tempfile
from typing import List, Union

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Backblaze B2 (S3-compatible API)
    B2_ENDPOINT: str              # e.g. https://s3.us-west-004.backblazeb2.com
    B2_REGION: str = "us-west-004"
    B2_APPLICATION_KEY_ID: str
    B2_APPLICATION_KEY: str
    B2_BUCKET_NAME: str
    B2_PUBLIC_URL: str            # Public base URL of the bucket, used for gallery links

    # Application
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: Union[str, List[str]] = "*"

    # Scratch area for chunk files and assembled uploads
    UPLOAD_TEMP_DIR: str = os.path.join(tempfile.gettempdir(), "wedding-uploads")

    # Chunked upload sessions
    MAX_CONCURRENT_SESSIONS: int = 3
    SESSION_RETRY_AFTER_SECONDS: int = 30

    # Request size ceilings (hosting platform caps request bodies around 4.5MB)
    MAX_CHUNK_BYTES: int = 5 * 1024 * 1024
    MAX_CHUNK_REQUEST_BYTES: int = 6 * 1024 * 1024  # Chunk plus multipart overhead
    MAX_SIMPLE_UPLOAD_BYTES: int = 4 * 1024 * 1024

    # Janitor
    JANITOR_MAX_AGE_SECONDS: int = 300  # 5 minutes
    JANITOR_INTERVAL_SECONDS: int = 60

    # Gallery and presigned URLs
    PRESIGNED_URL_EXPIRATION: int = 3600  # 1 hour
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    @model_validator(mode="before")
    @classmethod
    def parse_cors_origins(cls, values):
        """Parse CORS_ORIGINS from comma-separated string to list."""
        if isinstance(values.get("CORS_ORIGINS"), str):
            values["CORS_ORIGINS"] = [
                origin.strip() for origin in values["CORS_ORIGINS"].split(",")
            ]
        return values

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
