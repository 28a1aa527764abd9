"""Object store integration for letter images.

Letters only keep an opaque reference (the object key) to their scanned
image; the bytes live in an S3-compatible bucket.

Example:
    from lettertrack.services.storage import ImageStore
    from lettertrack.core.settings import get_settings

    store = ImageStore.from_settings(get_settings().storage)
    key = store.upload(data, filename="scan.jpg", content_type="image/jpeg")
"""

from __future__ import annotations

import hashlib
import logging
import mimetypes
import uuid
from pathlib import PurePath
from typing import TYPE_CHECKING

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from lettertrack.core.errors import UnavailableError, ValidationError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

    from lettertrack.core.config import StorageSettings

logger = logging.getLogger(__name__)

KEY_PREFIX = "letters/"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024


class ImageStore:
    """S3-compatible storage for letter images.

    The client uses synchronous boto3; call it from a worker thread when
    running inside the event loop.
    """

    def __init__(
        self,
        bucket: str,
        *,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "us-east-1",
        max_bytes: int = DEFAULT_MAX_BYTES,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        """Initialize the image store.

        Args:
            bucket: Bucket holding the images.
            endpoint_url: S3-compatible endpoint URL (None for AWS).
            access_key: S3 access key ID.
            secret_key: S3 secret access key.
            region: AWS region (use us-east-1 for MinIO).
            max_bytes: Largest accepted image.
            connect_timeout: Connection timeout in seconds.
            read_timeout: Read timeout in seconds.
            max_retries: Maximum retry attempts for transient failures.
        """
        self.bucket = bucket
        self.max_bytes = max_bytes
        self._region = region

        # Configure boto3 with timeouts and retries
        config = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": max_retries, "mode": "standard"},
            signature_version="s3v4",
        )

        self._client: S3Client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=config,
        )

        logger.debug(
            "Initialized ImageStore for endpoint=%s bucket=%s",
            endpoint_url,
            bucket,
        )

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> ImageStore:
        """Create the store from StorageSettings configuration."""
        return cls(
            settings.bucket,
            endpoint_url=settings.endpoint,
            access_key=settings.access_key.get_secret_value(),
            secret_key=settings.secret_key.get_secret_value(),
            region=settings.region,
            max_bytes=settings.max_image_bytes,
        )

    def ensure_bucket(self) -> bool:
        """Ensure the bucket exists, creating it if necessary.

        Returns:
            True if the bucket was created, False if it already existed.

        Raises:
            UnavailableError: If the bucket cannot be checked or created.
        """
        try:
            self._client.head_bucket(Bucket=self.bucket)
            return False
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in {"404", "NoSuchBucket"}:
                logger.error("Failed to check bucket %s: %s", self.bucket, error_code)
                raise UnavailableError("Image storage is unavailable") from e
        except BotoCoreError as e:
            raise UnavailableError("Image storage is unavailable") from e

        try:
            # For us-east-1, don't specify LocationConstraint
            if self._region == "us-east-1":
                self._client.create_bucket(Bucket=self.bucket)
            else:
                self._client.create_bucket(
                    Bucket=self.bucket,
                    CreateBucketConfiguration={"LocationConstraint": self._region},
                )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to create bucket %s", self.bucket)
            raise UnavailableError("Image storage is unavailable") from e
        logger.info("Created bucket: %s", self.bucket)
        return True

    def upload(self, data: bytes, *, filename: str | None, content_type: str | None) -> str:
        """Store an image and return its reference.

        Args:
            data: Image bytes.
            filename: Original file name, used for the key extension.
            content_type: MIME type sent by the client.

        Returns:
            Object key to persist on the letter.

        Raises:
            ValidationError: If the upload is empty, too large or not an image.
            UnavailableError: If the object store cannot be reached.
        """
        if not data:
            raise ValidationError.for_field("image", "Image file is empty")
        if len(data) > self.max_bytes:
            raise ValidationError.for_field(
                "image", f"Image exceeds the {self.max_bytes} byte limit"
            )
        if content_type is None and filename:
            content_type = mimetypes.guess_type(filename)[0]
        if not content_type or not content_type.startswith("image/"):
            raise ValidationError.for_field("image", "Only image files are accepted")

        suffix = PurePath(filename).suffix.lower() if filename else ""
        key = f"{KEY_PREFIX}{uuid.uuid4()}{suffix}"
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata={"sha256-digest": hashlib.sha256(data).hexdigest()},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Image upload failed for %s", key)
            raise UnavailableError("Image storage is unavailable") from e

        logger.debug("Uploaded image %s (%d bytes)", key, len(data))
        return key

    def delete(self, key: str) -> None:
        """Remove a stored image; deleting a missing key is not an error.

        Raises:
            UnavailableError: If the object store cannot be reached.
        """
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error("Image delete failed for %s", key)
            raise UnavailableError("Image storage is unavailable") from e
        logger.debug("Deleted image %s", key)
