from typing import Literal, Optional
from fastapi import HTTPException
from pydantic import BaseModel, Field, ValidationError


class ValidatedCaptureForm(BaseModel):
    description: Optional[str] = Field(default=None, max_length=280)
    location_permission: Literal["granted", "denied", "undetermined"]
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def validate_capture_form(
    description: Optional[str],
    location_permission: str,
    latitude: Optional[float],
    longitude: Optional[float],
) -> ValidatedCaptureForm:
    # blank description is stored as null
    description = (description or "").strip() or None

    try:
        return ValidatedCaptureForm(
            description=description,
            location_permission=location_permission,
            latitude=latitude,
            longitude=longitude,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=e.errors(include_url=False),
        )
