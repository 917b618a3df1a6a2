from datetime import datetime, timedelta

import mongomock
import pytest

from internship_portal.core.cache import TTLCache
from internship_portal.services.assignment_service import AssignmentService
from internship_portal.services.leaderboard_service import LeaderboardAggregator
from internship_portal.services.mongo_service import (
    ProfileStore, AssignmentStore, SubmissionStore, SubmissionIndexStore,
    LeaderboardStore, TrackStatsStore
)
from internship_portal.services.profile_service import ProfileService
from internship_portal.services.submission_service import SubmissionRecorder

TRACKS = ["Data Analysis", "Web Development", "Mobile Application Development"]
T0 = datetime(2025, 3, 10, 9, 0, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def db():
    return mongomock.MongoClient()["portal_test"]


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def profiles(db, clock):
    return ProfileService(ProfileStore(db), TRACKS, clock)


@pytest.fixture
def assignments(db, clock):
    return AssignmentService(AssignmentStore(db), TRACKS, clock)


@pytest.fixture
def leaderboard(db, clock):
    return LeaderboardAggregator(LeaderboardStore(db), TrackStatsStore(db), TTLCache(300), clock)


@pytest.fixture
def index_store(db):
    return SubmissionIndexStore(db)


@pytest.fixture
def recorder(db, index_store, assignments, leaderboard, clock):
    return SubmissionRecorder(SubmissionStore(db), index_store, assignments, leaderboard, clock)


@pytest.fixture
def asha(profiles):
    return profiles.onboard(
        {"uid": "asha", "email": "asha@example.com"}, "Asha", "Pune University", "Data Analysis"
    )
