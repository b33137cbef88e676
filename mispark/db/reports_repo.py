import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import text
from sqlmodel import Session, select

from mispark.models.leaderboard import LeaderboardEntry, UserRanking
from mispark.models.profile import Profile
from mispark.models.report import FeedReport, NewReport, Report

logger = logging.getLogger(__name__)


class ReportBackend:
    """Reports, profiles and ranking functions in the backend database.

    Session work is blocking, so every public call runs it in a worker
    thread and the event loop stays free.
    """

    def __init__(self, engine):
        self.engine = engine

    def _report_query(self):
        return (
            select(Report, Profile)
            .join(Profile, Profile.user_id == Report.user_id, isouter=True)
            .order_by(Report.created_at.desc(), Report.id.desc())
        )

    def _fetch_reports(self) -> list[FeedReport]:
        with Session(self.engine) as session:
            rows = session.exec(self._report_query()).all()
            return [FeedReport.from_row(report, profile) for report, profile in rows]

    def _fetch_report(self, report_id: int) -> Optional[FeedReport]:
        with Session(self.engine) as session:
            row = session.exec(self._report_query().where(Report.id == report_id)).first()
            if not row:
                return None

            report, profile = row
            return FeedReport.from_row(report, profile)

    def _insert_report(self, new: NewReport) -> FeedReport:
        with Session(self.engine) as session:
            db_report = Report(**new.model_dump())

            session.add(db_report)
            session.commit()
            session.refresh(db_report)

            profile = session.get(Profile, db_report.user_id)
            return FeedReport.from_row(db_report, profile)

    def _delete_report(self, report_id: int) -> list[Report]:
        with Session(self.engine) as session:
            report = session.get(Report, report_id)
            if not report:
                return []

            deleted = Report.model_validate(report.model_dump())
            session.delete(report)
            session.commit()

            return [deleted]

    def _get_leaderboard(self) -> list[LeaderboardEntry]:
        with Session(self.engine) as session:
            rows = session.execute(text("select * from get_leaderboard()")).mappings().all()
            return [LeaderboardEntry.model_validate(dict(row)) for row in rows]

    def _get_user_ranking(self, user_id: str) -> Optional[UserRanking]:
        with Session(self.engine) as session:
            row = session.execute(
                text("select * from get_user_ranking(:target_user_id)"),
                {"target_user_id": user_id},
            ).mappings().first()

            if not row:
                return None

            return UserRanking.model_validate(dict(row))

    def _upsert_profile_photo(self, user_id: str, url: str) -> Profile:
        with Session(self.engine) as session:
            profile = session.get(Profile, user_id)
            if not profile:
                raise LookupError(f"No profile for user {user_id}")

            profile.profile_photo_url = url
            profile.updated_at = datetime.now(timezone.utc)

            session.add(profile)
            session.commit()
            session.refresh(profile)

            return profile

    async def fetch_reports(self) -> list[FeedReport]:
        return await asyncio.to_thread(self._fetch_reports)

    async def fetch_report(self, report_id: int) -> Optional[FeedReport]:
        return await asyncio.to_thread(self._fetch_report, report_id)

    async def insert_report(self, new: NewReport) -> FeedReport:
        return await asyncio.to_thread(self._insert_report, new)

    async def delete_report(self, report_id: int) -> list[Report]:
        return await asyncio.to_thread(self._delete_report, report_id)

    async def get_leaderboard(self) -> list[LeaderboardEntry]:
        return await asyncio.to_thread(self._get_leaderboard)

    async def get_user_ranking(self, user_id: str) -> Optional[UserRanking]:
        return await asyncio.to_thread(self._get_user_ranking, user_id)

    async def upsert_profile_photo(self, user_id: str, url: str) -> Profile:
        return await asyncio.to_thread(self._upsert_profile_photo, user_id, url)
