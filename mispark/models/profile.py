from typing import Optional
from sqlmodel import Field, SQLModel
from datetime import date, datetime, timezone


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    # Same id as the auth user
    user_id: str = Field(primary_key=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    username: str
    birthdate: Optional[date] = Field(default=None)
    profile_photo_url: Optional[str] = Field(default=None)
