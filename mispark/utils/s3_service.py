import asyncio
import io
import logging
from datetime import datetime, timezone
from typing import Optional
from PIL import Image
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from mispark.config import (
    AWS_ACCESS_KEY_ID,
    AWS_SECRET_ACCESS_KEY,
    S3_ENDPOINT_URL,
    S3_REGION,
    STORAGE_PUBLIC_URL,
)

logger = logging.getLogger(__name__)

PUBLIC_PATH = "/storage/v1/object/public/"


class UploadError(Exception):
    user_message = "Failed to upload the photo"


def make_s3_client():
    return boto3.client(
        service_name="s3",
        endpoint_url=S3_ENDPOINT_URL,
        aws_access_key_id=AWS_ACCESS_KEY_ID,
        aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
        region_name=S3_REGION,
    )


def compress_image(data: bytes, max_width=1400, quality=80):
    img = Image.open(io.BytesIO(data))
    img = img.convert("RGB")

    # Resize while keeping aspect ratio
    w, h = img.size
    if w > max_width:
        new_height = int(h * (max_width / w))
        img = img.resize((max_width, new_height), Image.LANCZOS)

    # Try WebP first
    buffer = io.BytesIO()

    try:
        img.save(buffer, format="WEBP", quality=quality, method=6)
        ext = "webp"
    except (OSError, KeyError, ValueError) as e:
        logger.warning("WebP encoding failed, falling back to JPEG: %s", e)

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
        ext = "jpg"

    return buffer.getvalue(), ext


def report_photo_key(user_id: str, ext: str, now: Optional[datetime] = None) -> str:
    # millisecond suffix keeps repeated captures from colliding
    now = now or datetime.now(timezone.utc)
    return f"{user_id}/{int(now.timestamp() * 1000)}.{ext}"


def profile_photo_key(user_id: str, ext: str) -> str:
    return f"{user_id}/avatar.{ext}"


def content_type_for(ext: str) -> str:
    ext = ext.lower()
    if ext in ("jpg", "jpeg"):
        return "image/jpeg"
    return f"image/{ext}"


class PhotoUploadClient:
    """Uploads image bytes to one bucket and hands back the public URL."""

    def __init__(self, bucket: str, s3=None, public_base_url: str = STORAGE_PUBLIC_URL):
        self.bucket = bucket
        self.s3 = s3 or make_s3_client()
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}{PUBLIC_PATH}{self.bucket}/{key}"

    def key_from_public_url(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None

        marker = f"{PUBLIC_PATH}{self.bucket}/"
        idx = url.find(marker)
        if idx == -1:
            return None

        return url[idx + len(marker):] or None

    def _put(self, data: bytes, key: str, content_type: str, upsert: bool):
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
            "CacheControl": "max-age=3600",
        }
        if not upsert:
            # refuse to overwrite an existing object
            params["IfNoneMatch"] = "*"

        self.s3.put_object(**params)

    async def upload(self, data: bytes, key: str, content_type: str = "image/jpeg", upsert: bool = False) -> str:
        """Store `data` under `key`. No retries; callers own the retry policy."""
        if not data:
            raise UploadError("empty image")

        try:
            await asyncio.to_thread(self._put, data, key, content_type, upsert)
        except (BotoCoreError, ClientError) as e:
            raise UploadError(f"upload of {key} failed: {e}") from e

        logger.info("Uploaded %s/%s", self.bucket, key)
        return self.public_url(key)

    async def remove(self, keys: list[str]):
        for key in keys:
            await asyncio.to_thread(self.s3.delete_object, Bucket=self.bucket, Key=key)
