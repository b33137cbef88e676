from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from mispark.core.capture import CaptureError, CaptureInProgress, CaptureStage, UploadedPhotoSource
from mispark.core.session import DeleteFailed
from mispark.utils.app_state import get_capture_pipeline, get_feed_session
from mispark.utils.auth_helper import get_current_user_required, require_admin
from mispark.utils.form_validator import validate_capture_form
from mispark.utils.location import GeoLocationGate, PermissionDenied, ReportedLocationProvider


router = APIRouter()

CAPTURE_FAILURE_STATUS = {
    CaptureStage.ACQUIRING_LOCATION: 422,
    CaptureStage.CAPTURING_PHOTO: 400,
    CaptureStage.UPLOADING_PHOTO: 502,
    CaptureStage.INSERTING_ROW: 502,
}


@router.get("")
async def get_feed(
    feed=Depends(get_feed_session),
    current_user=Depends(get_current_user_required),
):
    return {"reports": [report.model_dump(mode="json") for report in feed.store.reports]}


@router.get("/map")
async def get_map_feed(
    feed=Depends(get_feed_session),
    current_user=Depends(get_current_user_required),
):
    return {"reports": await feed.map_markers()}


@router.post("/refresh")
async def refresh_feed(
    feed=Depends(get_feed_session),
    current_user=Depends(get_current_user_required),
):
    if not await feed.refresh():
        raise HTTPException(status_code=502, detail="Failed to load reports")

    return {"count": len(feed.store)}


@router.post("/capture", status_code=201)
async def capture_report(
    location_permission: str = Form(...),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    image: UploadFile = File(...),
    pipeline=Depends(get_capture_pipeline),
    current_user=Depends(get_current_user_required),
):
    form = validate_capture_form(description, location_permission, latitude, longitude)

    gate = GeoLocationGate(ReportedLocationProvider(form.location_permission, form.latitude, form.longitude))

    try:
        report = await pipeline.run(
            current_user["sub"],
            gate,
            UploadedPhotoSource(image),
            description=form.description,
        )
    except CaptureInProgress:
        raise HTTPException(status_code=409, detail="A report is already being uploaded")
    except CaptureError as e:
        status_code = CAPTURE_FAILURE_STATUS.get(e.stage, 500)
        if isinstance(e.cause, PermissionDenied):
            status_code = 403
        raise HTTPException(status_code=status_code, detail=e.user_message)

    # the feed picks the new row up from the realtime channel
    return {"id": report.id}


@router.delete("/{report_id}")
async def delete_report(
    report_id: int,
    feed=Depends(get_feed_session),
    current_user=Depends(require_admin),
):
    try:
        await feed.delete_report(report_id)
    except DeleteFailed:
        raise HTTPException(status_code=502, detail=DeleteFailed.user_message)

    return True
