import asyncio
import io
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from mispark.utils.s3_service import (
    PhotoUploadClient,
    UploadError,
    compress_image,
    content_type_for,
    profile_photo_key,
    report_photo_key,
)


def make_client():
    return PhotoUploadClient("report-photos", s3=MagicMock(), public_base_url="https://proj.supabase.co/")


def test_upload_returns_public_url():
    client = make_client()

    url = asyncio.run(client.upload(b"jpeg", "user-1/1700000000000.jpg"))

    assert url == "https://proj.supabase.co/storage/v1/object/public/report-photos/user-1/1700000000000.jpg"
    params = client.s3.put_object.call_args.kwargs
    assert params["Bucket"] == "report-photos"
    assert params["IfNoneMatch"] == "*"


def test_upsert_may_overwrite():
    client = make_client()

    asyncio.run(client.upload(b"png", "user-1/avatar.png", content_type="image/png", upsert=True))

    assert "IfNoneMatch" not in client.s3.put_object.call_args.kwargs


def test_storage_errors_become_upload_errors():
    client = make_client()
    client.s3.put_object.side_effect = ClientError(
        {"Error": {"Code": "PreconditionFailed", "Message": "exists"}},
        "PutObject",
    )

    with pytest.raises(UploadError):
        asyncio.run(client.upload(b"jpeg", "user-1/1.jpg"))

    assert client.s3.put_object.call_count == 1


def test_empty_upload_is_rejected():
    client = make_client()

    with pytest.raises(UploadError):
        asyncio.run(client.upload(b"", "user-1/1.jpg"))

    client.s3.put_object.assert_not_called()


def test_key_round_trip_from_public_url():
    client = make_client()
    url = client.public_url("user-1/1.jpg")

    assert client.key_from_public_url(url) == "user-1/1.jpg"
    assert client.key_from_public_url("https://elsewhere.example/1.jpg") is None
    assert client.key_from_public_url(None) is None


def test_remove_deletes_each_key():
    client = make_client()

    asyncio.run(client.remove(["a.jpg", "b.jpg"]))

    assert client.s3.delete_object.call_count == 2


def test_keys():
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    assert report_photo_key("u1", "jpg", now) == f"u1/{int(now.timestamp() * 1000)}.jpg"
    assert profile_photo_key("u1", "png") == "u1/avatar.png"
    assert content_type_for("JPG") == "image/jpeg"
    assert content_type_for("webp") == "image/webp"


def test_compress_image_limits_width():
    buffer = io.BytesIO()
    Image.new("RGB", (3000, 1500), "blue").save(buffer, format="PNG")

    data, ext = compress_image(buffer.getvalue())

    assert ext in ("webp", "jpg")
    assert Image.open(io.BytesIO(data)).size[0] == 1400
