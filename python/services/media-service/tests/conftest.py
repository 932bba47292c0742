"""
Pytest configuration for the Media Service.

Settings are read from the environment when app.core.config is imported, so
the B2 variables are set here before any app module is loaded.
"""

import os

os.environ.setdefault("B2_ENDPOINT", "https://s3.us-west-004.backblazeb2.test")
os.environ.setdefault("B2_APPLICATION_KEY_ID", "test-key-id")
os.environ.setdefault("B2_APPLICATION_KEY", "test-key")
os.environ.setdefault("B2_BUCKET_NAME", "wedding-test")
os.environ.setdefault("B2_PUBLIC_URL", "https://cdn.test/file/wedding-test")

from datetime import datetime, timedelta, timezone  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from botocore.exceptions import ClientError  # noqa: E402
from httpx import ASGITransport  # noqa: E402

from app.core.dependencies import build_services, get_services  # noqa: E402
from app.main import app  # noqa: E402
from app.s3.client import S3Client  # noqa: E402

BUCKET = "wedding-test"
PUBLIC_URL = "https://cdn.test/file/wedding-test"


class FakeB2:
    """In-memory stand-in for the parts of the boto3 S3 client the service calls."""

    def __init__(self):
        self.objects = {}
        self._clock = datetime(2024, 6, 15, 18, 0, tzinfo=timezone.utc)

    def _store(self, key, body, content_type, metadata):
        self._clock += timedelta(seconds=1)
        self.objects[key] = {
            "Body": body,
            "ContentType": content_type,
            "Metadata": metadata or {},
            "LastModified": self._clock,
        }

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None, Config=None, Callback=None):
        extra = ExtraArgs or {}
        self._store(Key, Fileobj.read(), extra.get("ContentType"), extra.get("Metadata"))

    def put_object(self, Bucket, Key, Body, ContentType=None, Metadata=None):
        self._store(Key, Body, ContentType, Metadata)
        return {"ETag": '"fake"'}

    def list_objects_v2(self, Bucket, Prefix="", MaxKeys=1000, ContinuationToken=None):
        keys = sorted(key for key in self.objects if key.startswith(Prefix))
        start = int(ContinuationToken) if ContinuationToken else 0
        page = keys[start:start + MaxKeys]
        truncated = start + MaxKeys < len(keys)
        response = {
            "Contents": [
                {"Key": key, "Size": len(self.objects[key]["Body"]), "LastModified": self.objects[key]["LastModified"]}
                for key in page
            ],
            "IsTruncated": truncated,
        }
        if truncated:
            response["NextContinuationToken"] = str(start + MaxKeys)
        return response

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"

    def head_bucket(self, Bucket):
        return {}


def client_error(code: str, message: str = "error", operation: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture
def fake_b2():
    return FakeB2()


@pytest.fixture
def boto_client(fake_b2):
    """MagicMock wrapping FakeB2, so tests can both inspect calls and inject failures."""
    return MagicMock(wraps=fake_b2)


@pytest.fixture
def s3(boto_client):
    return S3Client(client=boto_client, bucket=BUCKET, public_url=PUBLIC_URL)


@pytest.fixture
def scratch_root(tmp_path):
    return str(tmp_path / "scratch")


@pytest.fixture
def services(s3, scratch_root):
    return build_services(s3=s3, scratch_root=scratch_root)


@pytest_asyncio.fixture
async def api_client(services):
    """HTTP client talking to the app in-process with the test services wired in."""
    app.dependency_overrides[get_services] = lambda: services
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def scratch_entries(root: str) -> list:
    """Everything under the scratch root, relative paths."""
    entries = []
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            entries.append(os.path.relpath(os.path.join(dirpath, name), root))
    return sorted(entries)
