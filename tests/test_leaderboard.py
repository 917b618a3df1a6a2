from datetime import timedelta
from itertools import permutations

import mongomock
import pytest
from pymongo.errors import DuplicateKeyError

from internship_portal.core.cache import TTLCache
from internship_portal.services.leaderboard_service import (
    LeaderboardAggregator, aggregate_submissions, response_latency, round_half_up
)
from internship_portal.services.mongo_service import LeaderboardStore, TrackStatsStore

from tests.conftest import FakeClock, T0

TRACK = "Data Analysis"
PROFILE = {"name": "", "email": "", "institution": ""}


def _seed(leaderboard, student_id, latencies):
    for latency in latencies:
        leaderboard.record_response(student_id, TRACK, latency, dict(PROFILE, name=student_id))


@pytest.mark.parametrize("delta, expected", [
    (timedelta(seconds=2), 2),
    (timedelta(hours=100), 86400),
    (timedelta(seconds=-30), 1),
    (timedelta(milliseconds=400), 1),
    (timedelta(minutes=90), 5400),
])
def test_response_latency_is_clamped(delta, expected):
    assert response_latency(T0, T0 + delta) == expected


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


def test_first_response_creates_entry(leaderboard):
    entry = leaderboard.record_response("asha", TRACK, 90, {"name": "Asha", "email": "a@x.io", "institution": "PU"})

    assert entry["total_submissions"] == 1
    assert entry["total_response_seconds"] == 90
    assert entry["average_seconds"] == 90
    assert entry["name"] == "Asha"


def test_later_responses_update_running_average(leaderboard):
    _seed(leaderboard, "asha", [90, 30, 31])

    stored = leaderboard.entries.get(TRACK, "asha")
    assert stored["total_submissions"] == 3
    assert stored["total_response_seconds"] == 151
    assert stored["average_seconds"] == 50


def test_top_students_orders_by_average_then_count(leaderboard):
    _seed(leaderboard, "A", [10] * 5)
    _seed(leaderboard, "B", [10] * 8)
    _seed(leaderboard, "C", [5])

    top = leaderboard.top_students(TRACK, 10)

    assert [e["student_id"] for e in top] == ["C", "B", "A"]
    assert [e["rank"] for e in top] == [1, 2, 3]


def test_top_students_pages_with_skip(leaderboard):
    _seed(leaderboard, "A", [10] * 5)
    _seed(leaderboard, "B", [10] * 8)
    _seed(leaderboard, "C", [5])

    page = leaderboard.top_students(TRACK, 2, skip=1)

    assert [(e["student_id"], e["rank"]) for e in page] == [("B", 2), ("A", 3)]


def test_rank_of_counts_lower_average_and_tie_with_more_submissions(leaderboard):
    _seed(leaderboard, "A", [10] * 5)
    _seed(leaderboard, "B", [10] * 8)
    _seed(leaderboard, "C", [5])

    assert leaderboard.rank_of("C", TRACK)["rank"] == 1
    assert leaderboard.rank_of("B", TRACK)["rank"] == 2
    result = leaderboard.rank_of("A", TRACK)
    assert result["rank"] == 3
    assert result["total"] == 3
    assert result["entry"]["student_id"] == "A"


def test_rank_of_student_without_entry(leaderboard):
    assert leaderboard.rank_of("nobody", TRACK) == {"rank": 0, "total": 0, "entry": None}


def test_tracks_are_ranked_independently(leaderboard):
    _seed(leaderboard, "A", [100])
    leaderboard.record_response("W", "Web Development", 1, PROFILE)

    assert leaderboard.rank_of("A", TRACK)["rank"] == 1
    assert [e["student_id"] for e in leaderboard.top_students("Web Development")] == ["W"]


def test_stats_rollup(leaderboard):
    _seed(leaderboard, "A", [10, 20])
    _seed(leaderboard, "B", [41])

    stats = leaderboard.stats(TRACK)

    assert stats["track"] == TRACK
    assert stats["total_students"] == 2
    assert stats["total_submissions"] == 3
    # mean of per-student averages: (15 + 41) / 2
    assert stats["average_response_seconds"] == 28


def test_stats_for_empty_track(leaderboard):
    stats = leaderboard.stats("Web Development")
    assert stats["total_students"] == 0
    assert stats["average_response_seconds"] == 0


def test_cached_reads_until_track_is_written(leaderboard):
    _seed(leaderboard, "A", [50])
    assert [e["student_id"] for e in leaderboard.top_students(TRACK)] == ["A"]

    # A write that bypasses the aggregator is not visible while cached
    leaderboard.entries.increment(TRACK, "Z", 1, PROFILE, T0)
    assert [e["student_id"] for e in leaderboard.top_students(TRACK)] == ["A"]

    # Any aggregator write invalidates the track
    _seed(leaderboard, "B", [60])
    assert [e["student_id"] for e in leaderboard.top_students(TRACK)] == ["Z", "A", "B"]


def test_cached_rows_are_copies(leaderboard):
    _seed(leaderboard, "A", [50])
    leaderboard.top_students(TRACK)[0]["name"] = "mutated"
    assert leaderboard.top_students(TRACK)[0]["name"] == "A"


def _submission(student_id, created_offset, submitted_offset):
    return {
        "student_id": student_id,
        "student_name": student_id,
        "student_email": f"{student_id}@example.com",
        "institution": "PU",
        "track": TRACK,
        "assignment_created_at": T0 + timedelta(seconds=created_offset),
        "submitted_at": T0 + timedelta(seconds=submitted_offset),
    }


RAW = [
    _submission("asha", 0, 90),
    _submission("asha", 100, 131),
    _submission("ravi", 0, 7),
    _submission("asha", 200, 200 + 100 * 3600),
]


@pytest.mark.parametrize("order", list(permutations(range(len(RAW)))))
def test_rebuild_matches_incremental_path_for_any_order(order):
    clock = FakeClock(T0)
    db = mongomock.MongoClient()["portal_test"]
    incremental = LeaderboardAggregator(LeaderboardStore(db), TrackStatsStore(db), TTLCache(300), clock)

    for i in order:
        sub = RAW[i]
        latency = incremental.latency(sub["assignment_created_at"], sub["submitted_at"])
        incremental.record_response(sub["student_id"], TRACK, latency, PROFILE)

    rebuilt = aggregate_submissions(RAW, clock())
    for student_id, expected in rebuilt.items():
        actual = incremental.entries.get(TRACK, student_id)
        for field in ("total_submissions", "total_response_seconds", "average_seconds"):
            assert actual[field] == expected[field]

    assert rebuilt["asha"]["total_response_seconds"] == 90 + 31 + 86400


def test_rebuild_replaces_track_entries(leaderboard):
    _seed(leaderboard, "stale", [5])

    entries = leaderboard.rebuild(TRACK, RAW)

    assert {e["student_id"] for e in entries} == {"asha", "ravi"}
    assert leaderboard.entries.get(TRACK, "stale") is None
    assert leaderboard.rank_of("ravi", TRACK)["rank"] == 1
    assert leaderboard.stats(TRACK)["total_submissions"] == 4


class RacedUpsertCollection:
    """Raises a duplicate key on the first upsert, as when two first submissions collide."""

    def __init__(self, inner):
        self.inner = inner
        self.failures = 1

    def find_one_and_update(self, *args, **kwargs):
        if self.failures:
            self.failures -= 1
            self.inner.find_one_and_update(*args, **kwargs)
            raise DuplicateKeyError("E11000 duplicate key error")
        return self.inner.find_one_and_update(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.inner, name)


def test_first_upsert_race_retries_and_counts_both(leaderboard):
    leaderboard.entries.collection = RacedUpsertCollection(leaderboard.entries.collection)

    entry = leaderboard.record_response("asha", TRACK, 40, PROFILE)

    assert entry["total_submissions"] == 2
    assert entry["total_response_seconds"] == 80
    assert leaderboard.entries.get(TRACK, "asha")["average_seconds"] == 40
