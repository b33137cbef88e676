import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from mispark.models.report import FeedReport, NewReport
from mispark.utils.location import Coordinates, GeoLocationGate, LocationError
from mispark.utils.plate_extractor import extract_license_plate
from mispark.utils.s3_service import UploadError, compress_image, content_type_for, report_photo_key

logger = logging.getLogger(__name__)


class CaptureStage(str, Enum):
    IDLE = "idle"
    ACQUIRING_LOCATION = "acquiring_location"
    CAPTURING_PHOTO = "capturing_photo"
    EXTRACTING_PLATE = "extracting_plate"
    UPLOADING_PHOTO = "uploading_photo"
    INSERTING_ROW = "inserting_row"
    DONE = "done"
    FAILED = "failed"


class CaptureError(Exception):
    def __init__(self, stage: CaptureStage, user_message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{stage.value}: {user_message}")
        self.stage = stage
        self.user_message = user_message
        self.cause = cause


class CaptureInProgress(Exception):
    pass


@dataclass(frozen=True)
class CapturedPhoto:
    data: bytes
    ext: str = "jpg"


class UploadedPhotoSource:
    """The camera step when the shell posts the shot as a multipart upload."""

    def __init__(self, upload):
        self.upload = upload

    async def capture(self) -> CapturedPhoto:
        data = await self.upload.read()
        if not data:
            raise ValueError("empty photo")

        ext = (self.upload.filename or "").rsplit(".", 1)[-1].lower()
        if ext not in ("jpg", "jpeg", "png", "webp", "heic"):
            ext = "jpg"

        return CapturedPhoto(data=data, ext=ext)


class CapturePipeline:
    def __init__(
        self,
        ocr,
        uploader,
        backend,
        compress: bool = True,
        max_photo_bytes: int = 10 * 1024 * 1024,
        on_stage: Optional[Callable[[CaptureStage], None]] = None,
        is_active: Callable[[], bool] = lambda: True,
    ):
        self.ocr = ocr
        self.uploader = uploader
        self.backend = backend
        self.compress = compress
        self.max_photo_bytes = max_photo_bytes
        self.on_stage = on_stage
        self.is_active = is_active

        self.stage = CaptureStage.IDLE
        self.history: list[CaptureStage] = []

    @property
    def busy(self) -> bool:
        return self.stage != CaptureStage.IDLE

    def _enter(self, stage: CaptureStage):
        self.stage = stage
        self.history.append(stage)
        logger.debug("Capture stage: %s", stage.value)

        # owner may be gone while network calls settle
        if self.on_stage and self.is_active():
            self.on_stage(stage)

    def _fail(self, user_message: str, cause: Optional[BaseException] = None) -> CaptureError:
        failed_at = self.stage
        logger.error("Capture failed at %s: %s", failed_at.value, cause or user_message)
        self._enter(CaptureStage.FAILED)
        return CaptureError(failed_at, user_message, cause)

    async def _acquire_location(self, location_gate: GeoLocationGate) -> Coordinates:
        self._enter(CaptureStage.ACQUIRING_LOCATION)
        try:
            return await location_gate.acquire_location()
        except LocationError as e:
            raise self._fail(e.user_message, e)

    async def _capture_photo(self, camera) -> CapturedPhoto:
        self._enter(CaptureStage.CAPTURING_PHOTO)
        try:
            photo = await camera.capture()
        except Exception as e:
            raise self._fail("Failed to take the photo", e)

        if len(photo.data) > self.max_photo_bytes:
            raise self._fail(f"Photo exceeds {self.max_photo_bytes // (1024 * 1024)}MB limit")

        return photo

    async def _extract_plate(self, photo: CapturedPhoto) -> Optional[str]:
        self._enter(CaptureStage.EXTRACTING_PLATE)
        try:
            text = await self.ocr.read_text(
                photo.data,
                filename=f"photo.{photo.ext}",
                content_type=content_type_for(photo.ext),
            )
            plate = extract_license_plate(text)
        except Exception as e:
            logger.warning("OCR failed, continuing without a plate: %s", e)
            return None

        logger.info("Detected plate: %s", plate)
        return plate

    async def _upload_photo(self, user_id: str, photo: CapturedPhoto) -> str:
        self._enter(CaptureStage.UPLOADING_PHOTO)
        data, ext = photo.data, photo.ext
        try:
            if self.compress:
                data, ext = await asyncio.to_thread(compress_image, data)
            return await self.uploader.upload(data, report_photo_key(user_id, ext), content_type=content_type_for(ext))
        except UploadError as e:
            raise self._fail(UploadError.user_message, e)
        except OSError as e:
            # pillow could not decode the shot
            raise self._fail(UploadError.user_message, e)

    async def _insert_row(self, new: NewReport) -> FeedReport:
        self._enter(CaptureStage.INSERTING_ROW)
        try:
            return await self.backend.insert_report(new)
        except Exception as e:
            raise self._fail("Failed to create the report", e)

    async def run(
        self,
        user_id: str,
        location_gate: GeoLocationGate,
        camera,
        description: Optional[str] = None,
    ) -> FeedReport:
        if self.busy:
            raise CaptureInProgress("a capture is already running")

        self.history = []
        try:
            coords = await self._acquire_location(location_gate)
            photo = await self._capture_photo(camera)
            plate = await self._extract_plate(photo)
            photo_url = await self._upload_photo(user_id, photo)
            report = await self._insert_row(
                NewReport(
                    user_id=user_id,
                    description=description or None,
                    license_plate=plate,
                    photo_url=photo_url,
                    latitude=coords.latitude,
                    longitude=coords.longitude,
                )
            )
            self._enter(CaptureStage.DONE)
            logger.info("Report %s created by %s", report.id, user_id)
            return report
        finally:
            self.stage = CaptureStage.IDLE
