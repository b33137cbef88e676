import asyncio
import logging
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from mispark.utils.app_state import get_backend, get_profile_uploader
from mispark.utils.auth_helper import get_current_user_required
from mispark.utils.s3_service import UploadError, compress_image, content_type_for, profile_photo_key

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_UPLOAD_SIZE_MB = 5
MAX_UPLOAD_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024


@router.post("/photo")
async def upload_profile_photo(
    image: UploadFile = File(...),
    backend=Depends(get_backend),
    uploader=Depends(get_profile_uploader),
    current_user=Depends(get_current_user_required),
):
    user_id = current_user["sub"]

    raw_bytes = await image.read()

    if not raw_bytes:
        raise HTTPException(status_code=400, detail="Empty image")

    if len(raw_bytes) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=f"Image exceeds {MAX_UPLOAD_SIZE_MB}MB limit")

    try:
        data, ext = await asyncio.to_thread(compress_image, raw_bytes, max_width=512)
    except OSError:
        raise HTTPException(status_code=400, detail="Image not readable")

    # fixed key per user, replaced on every change
    try:
        url = await uploader.upload(data, profile_photo_key(user_id, ext), content_type=content_type_for(ext), upsert=True)
    except UploadError as e:
        logger.error("Profile photo upload failed: %s", e)
        raise HTTPException(status_code=502, detail=UploadError.user_message)

    try:
        await backend.upsert_profile_photo(user_id, url)
    except LookupError:
        raise HTTPException(status_code=404, detail="Profile not found")

    return {"profile_photo_url": url}
