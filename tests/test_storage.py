"""Tests for the letter image store.

Tests cover:
- Bucket creation
- Upload validation (empty, too large, not an image)
- Object keys and integrity metadata
- Deletion
- Error handling when the object store fails

Uses moto for S3 mocking to enable fast unit tests without Docker.
"""

import hashlib
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from moto import mock_aws

from lettertrack.core.config import StorageSettings
from lettertrack.core.errors import UnavailableError, ValidationError
from lettertrack.services.storage import KEY_PREFIX, ImageStore

BUCKET = "lettertrack-images"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def image_store():
    """ImageStore whose S3 calls are served by moto."""
    with mock_aws():
        store = ImageStore(
            BUCKET,
            access_key="test_access_key",
            secret_key="test_secret_key",  # noqa: S106
            max_bytes=1024,
        )
        store.ensure_bucket()
        yield store


class TestEnsureBucket:
    """Tests for bucket management."""

    def test_creates_missing_bucket(self):
        with mock_aws():
            store = ImageStore("fresh-bucket", access_key="a", secret_key="b")
            assert store.ensure_bucket() is True
            assert store.ensure_bucket() is False

    def test_unexpected_error_is_unavailable(self):
        store = ImageStore(BUCKET, access_key="a", secret_key="b")
        store._client = MagicMock()
        store._client.head_bucket.side_effect = ClientError(
            {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadBucket"
        )
        with pytest.raises(UnavailableError):
            store.ensure_bucket()


class TestUpload:
    """Tests for storing images."""

    def test_upload_returns_prefixed_key(self, image_store: ImageStore):
        key = image_store.upload(PNG_BYTES, filename="Scan.PNG", content_type="image/png")

        assert key.startswith(KEY_PREFIX)
        assert key.endswith(".png")
        stored = image_store._client.get_object(Bucket=BUCKET, Key=key)
        assert stored["Body"].read() == PNG_BYTES
        assert stored["ContentType"] == "image/png"
        assert stored["Metadata"]["sha256-digest"] == hashlib.sha256(PNG_BYTES).hexdigest()

    def test_content_type_guessed_from_filename(self, image_store: ImageStore):
        key = image_store.upload(PNG_BYTES, filename="scan.jpg", content_type=None)
        stored = image_store._client.head_object(Bucket=BUCKET, Key=key)
        assert stored["ContentType"] == "image/jpeg"

    def test_keys_are_unique(self, image_store: ImageStore):
        first = image_store.upload(PNG_BYTES, filename="a.png", content_type="image/png")
        second = image_store.upload(PNG_BYTES, filename="a.png", content_type="image/png")
        assert first != second

    @pytest.mark.parametrize(
        ("data", "content_type"),
        [
            (b"", "image/png"),
            (b"x" * 2048, "image/png"),
            (b"%PDF-1.7", "application/pdf"),
        ],
    )
    def test_rejected_uploads(self, image_store: ImageStore, data, content_type):
        with pytest.raises(ValidationError) as exc_info:
            image_store.upload(data, filename="file", content_type=content_type)
        assert "image" in exc_info.value.fields

    def test_store_failure_is_unavailable(self):
        store = ImageStore(BUCKET, access_key="a", secret_key="b")
        store._client = MagicMock()
        store._client.put_object.side_effect = EndpointConnectionError(
            endpoint_url="http://minio:9000"
        )
        with pytest.raises(UnavailableError):
            store.upload(PNG_BYTES, filename="a.png", content_type="image/png")


class TestDelete:
    def test_delete_removes_object(self, image_store: ImageStore):
        key = image_store.upload(PNG_BYTES, filename="a.png", content_type="image/png")
        image_store.delete(key)
        listing = image_store._client.list_objects_v2(Bucket=BUCKET)
        assert listing.get("KeyCount", 0) == 0

    def test_delete_missing_key_is_quiet(self, image_store: ImageStore):
        image_store.delete("letters/never-stored.png")


class TestFromSettings:
    def test_uses_storage_settings(self):
        settings = StorageSettings(
            enabled=True,
            access_key="key",
            secret_key="secret",  # noqa: S106
            bucket="scans-bucket",
            max_image_bytes=2048,
        )
        store = ImageStore.from_settings(settings)
        assert store.bucket == "scans-bucket"
        assert store.max_bytes == 2048
