import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from mispark.db.realtime import SUBSCRIBED, ChangeEvent
from mispark.models.report import FeedReport

BASE_TIME = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


def report(report_id, minutes, **fields):
    data = {
        "id": report_id,
        "user_id": "user-1",
        "photo_url": f"http://storage.test/storage/v1/object/public/report-photos/user-1/{report_id}.jpg",
        "latitude": 50.0755,
        "longitude": 14.4378,
        "created_at": BASE_TIME + timedelta(minutes=minutes),
        "profiles": [{"username": "spotter", "profile_photo_url": None}],
    }
    data.update(fields)
    return FeedReport.model_validate(data)


class FakeBackend:
    def __init__(self, rows=()):
        self.rows = {r.id: r for r in rows}
        self.fetch_error = None
        self.fetch_one_error = None
        self.insert_error = None
        self.delete_error = None
        self.delete_returns_nothing = False
        self.inserted = []
        self.deleted = []
        self.fetch_gate = None
        self.leaderboard = []
        self.leaderboard_error = None
        self.leaderboard_calls = 0
        self.rankings = {}

    def add(self, *rows):
        for row in rows:
            self.rows[row.id] = row

    async def fetch_reports(self):
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error:
            raise self.fetch_error
        return sorted(self.rows.values(), key=lambda r: r.created_at, reverse=True)

    async def fetch_report(self, report_id):
        if self.fetch_one_error:
            raise self.fetch_one_error
        return self.rows.get(report_id)

    async def insert_report(self, new):
        if self.insert_error:
            raise self.insert_error
        row = report(len(self.rows) + 100, 60, **new.model_dump())
        self.inserted.append(new)
        self.rows[row.id] = row
        return row

    async def delete_report(self, report_id):
        self.deleted.append(report_id)
        if self.delete_error:
            raise self.delete_error
        if self.delete_returns_nothing:
            return []
        row = self.rows.pop(report_id, None)
        return [row] if row else []

    async def get_leaderboard(self):
        self.leaderboard_calls += 1
        await asyncio.sleep(0)
        if self.leaderboard_error:
            raise self.leaderboard_error
        return list(self.leaderboard)

    async def get_user_ranking(self, user_id):
        return self.rankings.get(user_id)


class FakeChannel:
    def __init__(self):
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.on_event = None
        self.on_status = None

    async def subscribe(self, on_event, on_status=None):
        self.subscribe_calls += 1
        self.on_event = on_event
        self.on_status = on_status
        if on_status:
            await on_status(SUBSCRIBED)

    async def unsubscribe(self):
        self.unsubscribe_calls += 1

    async def push(self, event, row):
        await self.on_event(ChangeEvent(event=event, row=row))

    async def status(self, status):
        await self.on_status(status)


class FakeUploader:
    def __init__(self, error=None):
        self.error = error
        self.uploads = []
        self.removed = []
        self.remove_error = None

    async def upload(self, data, key, content_type="image/jpeg", upsert=False):
        self.uploads.append((key, content_type, upsert))
        if self.error:
            raise self.error
        return f"http://storage.test/storage/v1/object/public/report-photos/{key}"

    def key_from_public_url(self, url):
        marker = "/storage/v1/object/public/report-photos/"
        return url.split(marker, 1)[1] if url and marker in url else None

    async def remove(self, keys):
        if self.remove_error:
            raise self.remove_error
        self.removed.extend(keys)


@pytest.fixture
def make_report():
    return report


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def uploader():
    return FakeUploader()
