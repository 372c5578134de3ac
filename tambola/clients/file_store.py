"""Object storage for payment screenshots and QR images (S3-compatible)."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from tambola.errors import UploadError

logger = logging.getLogger(__name__)

# content type -> (extension, magic prefixes)
ALLOWED_IMAGE_TYPES: dict[str, tuple[str, tuple[bytes, ...]]] = {
    "image/png": ("png", (b"\x89PNG\r\n\x1a\n",)),
    "image/jpeg": ("jpg", (b"\xff\xd8\xff",)),
}


def validate_image(data: bytes, content_type: str, max_bytes: int) -> str:
    """Check type and size of an image upload; returns its file extension."""

    kind = (content_type or "").split(";")[0].strip().lower()
    if kind == "image/jpg":
        kind = "image/jpeg"
    if kind not in ALLOWED_IMAGE_TYPES:
        raise UploadError("Only PNG or JPEG images are accepted", details={"content_type": content_type})
    if not data:
        raise UploadError("Uploaded file is empty")
    if len(data) > max_bytes:
        raise UploadError(
            f"File exceeds {max_bytes // (1024 * 1024)}MB limit",
            details={"size": len(data), "max_bytes": max_bytes},
        )

    extension, magics = ALLOWED_IMAGE_TYPES[kind]
    if not any(data.startswith(m) for m in magics):
        raise UploadError("File content does not match its declared type", details={"content_type": kind})
    return extension


class FileStore:
    def __init__(
        self,
        bucket: str,
        *,
        public_base_url: str = "",
        region: str = "ap-south-1",
        endpoint_url: str = "",
        max_bytes: int = 2 * 1024 * 1024,
        client: Any | None = None,
    ) -> None:
        self.bucket = bucket
        self.max_bytes = max_bytes
        self._public_base_url = public_base_url.rstrip("/")
        self._region = region
        self._endpoint_url = endpoint_url
        self._client = client

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> FileStore:
        return cls(
            str(config.get("FILE_STORE_BUCKET") or "tambola-assets"),
            public_base_url=str(config.get("FILE_STORE_PUBLIC_URL") or ""),
            region=str(config.get("AWS_REGION") or "ap-south-1"),
            endpoint_url=str(config.get("S3_ENDPOINT_URL") or ""),
            max_bytes=int(config.get("MAX_UPLOAD_BYTES", 2 * 1024 * 1024)),
        )

    def _s3(self) -> Any:
        if self._client is None:
            import boto3

            self._client = boto3.client(
                "s3",
                region_name=self._region,
                endpoint_url=self._endpoint_url or None,
            )
        return self._client

    def public_url(self, bucket: str, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{bucket}/{key}"
        return f"https://{bucket}.s3.{self._region}.amazonaws.com/{key}"

    def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``bucket/key`` and return its public URL."""

        validate_image(data, content_type, self.max_bytes)

        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._s3().put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Upload of %s/%s failed: %s", bucket, key, exc)
            raise UploadError("File store rejected the upload", status_code=502) from exc

        logger.info("Uploaded %s/%s (%s bytes)", bucket, key, len(data))
        return self.public_url(bucket, key)

    def upload_image(self, prefix: str, data: bytes, content_type: str) -> str:
        """Upload under a generated key in the default bucket."""

        extension = validate_image(data, content_type, self.max_bytes)
        key = f"{prefix.strip('/')}/{uuid.uuid4().hex}.{extension}"
        return self.upload(self.bucket, key, data, content_type)
