from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field as PydanticField, field_validator
from sqlalchemy import Column, DateTime, func
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Report(SQLModel, table=True):
    __tablename__ = "reports"

    # Assigned by the database at insert time
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True),
    )

    # Reporter info
    user_id: str = Field(foreign_key="profiles.user_id", index=True)

    # Report fields
    description: Optional[str] = Field(default=None)
    license_plate: Optional[str] = Field(default=None)
    photo_url: str
    latitude: float
    longitude: float

    # Server controlled, opaque to the client
    status: Optional[str] = Field(default=None)


class NewReport(BaseModel):
    """Payload of the insert stage. Never carries an id or a timestamp."""

    user_id: str
    description: Optional[str] = None
    license_plate: Optional[str] = None
    photo_url: str = PydanticField(min_length=1)
    latitude: float
    longitude: float


class ReportProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    profile_photo_url: Optional[str] = None


class FeedReport(BaseModel):
    """A report row as it lives in the feed, with the joined profile snapshot.

    The join may come back as an object, a list of objects or nothing
    depending on the query shape; it is coerced to a single optional
    profile here so nothing downstream has to care.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: str
    description: Optional[str] = None
    license_plate: Optional[str] = None
    photo_url: str = PydanticField(min_length=1)
    latitude: float
    longitude: float
    created_at: datetime
    status: Optional[str] = None
    profile: Optional[ReportProfile] = PydanticField(
        default=None,
        validation_alias=AliasChoices("profile", "profiles"),
    )

    @field_validator("profile", mode="before")
    @classmethod
    def single_profile(cls, value: Any):
        if isinstance(value, (list, tuple)):
            return value[0] if value else None
        return value

    @field_validator("created_at")
    @classmethod
    def aware_timestamp(cls, value: datetime):
        # sqlite hands back naive timestamps; ordering needs one kind only
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_row(cls, report: Report, profile=None) -> "FeedReport":
        data = report.model_dump()
        if profile is not None:
            data["profile"] = {
                "username": profile.username,
                "profile_photo_url": profile.profile_photo_url,
            }
        return cls.model_validate(data)
