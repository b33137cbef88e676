import pytest
from pydantic import ValidationError

from mispark.models.report import FeedReport

ROW = {
    "id": 1,
    "user_id": "user-1",
    "photo_url": "http://storage.test/1.jpg",
    "latitude": 50.0,
    "longitude": 14.0,
    "created_at": "2025-05-01T12:00:00+00:00",
}


@pytest.mark.parametrize(
    "join",
    [
        {"profiles": {"username": "spotter"}},
        {"profiles": [{"username": "spotter"}]},
        {"profile": {"username": "spotter"}},
    ],
)
def test_profile_join_shapes_collapse_to_one(join):
    report = FeedReport.model_validate({**ROW, **join})

    assert report.profile.username == "spotter"
    assert report.profile.profile_photo_url is None


@pytest.mark.parametrize("join", [{}, {"profiles": None}, {"profiles": []}])
def test_missing_profile_is_none(join):
    assert FeedReport.model_validate({**ROW, **join}).profile is None


def test_naive_timestamps_are_treated_as_utc():
    report = FeedReport.model_validate({**ROW, "created_at": "2025-05-01T12:00:00"})

    assert report.created_at.utcoffset().total_seconds() == 0


def test_photo_url_is_required():
    with pytest.raises(ValidationError):
        FeedReport.model_validate({**ROW, "photo_url": ""})


def test_reports_are_immutable():
    report = FeedReport.model_validate(ROW)

    with pytest.raises(ValidationError):
        report.license_plate = "1AB 2345"
