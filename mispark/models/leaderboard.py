from typing import Optional
from pydantic import BaseModel, ConfigDict


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    username: Optional[str] = None
    profile_photo_url: Optional[str] = None
    total_reports: int


class UserRanking(BaseModel):
    model_config = ConfigDict(frozen=True)

    rank: Optional[int] = None
    total_reports: int = 0
