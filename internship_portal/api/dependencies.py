"""
Service wiring for route injection.

Each getter builds its service once per process on top of the shared Mongo
database. Tests swap them out through app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends

from internship_portal.core.auth import get_current_principal
from internship_portal.core.cache import TTLCache
from internship_portal.core.config import get_settings
from internship_portal.db.mongodb import get_mongo_db
from internship_portal.services.assignment_service import AssignmentService
from internship_portal.services.drive_client import GoogleDriveClient, get_drive_client
from internship_portal.services.leaderboard_service import LeaderboardAggregator
from internship_portal.services.mongo_service import (
    ProfileStore, AssignmentStore, SubmissionStore, SubmissionIndexStore,
    LeaderboardStore, TrackStatsStore
)
from internship_portal.services.profile_service import ProfileService
from internship_portal.services.submission_service import SubmissionRecorder


@lru_cache()
def get_profile_service() -> ProfileService:
    return ProfileService(ProfileStore(get_mongo_db()), get_settings().tracks)


@lru_cache()
def get_assignment_service() -> AssignmentService:
    return AssignmentService(AssignmentStore(get_mongo_db()), get_settings().tracks)


@lru_cache()
def get_leaderboard() -> LeaderboardAggregator:
    settings = get_settings()
    db = get_mongo_db()
    return LeaderboardAggregator(
        LeaderboardStore(db),
        TrackStatsStore(db),
        TTLCache(settings.leaderboard_cache_ttl_seconds, settings.leaderboard_cache_max_entries),
        min_response_seconds=settings.min_response_seconds,
        max_response_seconds=settings.max_response_seconds,
    )


@lru_cache()
def get_submission_recorder() -> SubmissionRecorder:
    db = get_mongo_db()
    return SubmissionRecorder(
        SubmissionStore(db),
        SubmissionIndexStore(db),
        get_assignment_service(),
        get_leaderboard(),
    )


@lru_cache()
def get_file_host() -> GoogleDriveClient:
    return get_drive_client()


def get_current_student(
    principal: dict = Depends(get_current_principal),
    profiles: ProfileService = Depends(get_profile_service)
) -> dict:
    """Dependency - the signed-in principal's profile (404 routes to onboarding)."""
    return profiles.resolve(principal["uid"])
