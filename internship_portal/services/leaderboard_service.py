"""
Leaderboard Service - rolling per-student response-time aggregates.

Each (track, student) entry holds:
- total_submissions
- total_response_seconds (cumulative latency)
- average_seconds = round(total_response_seconds / total_submissions)

Ranking: lower average first, more submissions breaks ties.

Entries are a cache over the raw submissions: ``rebuild`` recomputes a
whole track from them and must agree with the incremental path.
"""

import logging
import math
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from internship_portal.core.cache import TTLCache
from internship_portal.services.mongo_service import LeaderboardStore, TrackStatsStore

logger = logging.getLogger(__name__)

MIN_RESPONSE_SECONDS = 1
MAX_RESPONSE_SECONDS = 24 * 60 * 60


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def response_latency(
    assignment_created_at: datetime,
    submitted_at: datetime,
    minimum: int = MIN_RESPONSE_SECONDS,
    maximum: int = MAX_RESPONSE_SECONDS
) -> int:
    """
    Whole seconds between an assignment opening and a submission, clamped
    to [minimum, maximum] so clock skew and stale assignments can't dominate.
    """
    seconds = int((submitted_at - assignment_created_at).total_seconds())
    return max(minimum, min(maximum, seconds))


def aggregate_submissions(
    submissions: Iterable[dict],
    now: datetime,
    minimum: int = MIN_RESPONSE_SECONDS,
    maximum: int = MAX_RESPONSE_SECONDS
) -> Dict[str, dict]:
    """Build leaderboard entries, keyed by student id, from raw submissions."""
    entries: Dict[str, dict] = {}
    for sub in sorted(submissions, key=lambda s: s["submitted_at"]):
        latency = response_latency(sub["assignment_created_at"], sub["submitted_at"], minimum, maximum)
        entry = entries.get(sub["student_id"])
        if entry is None:
            entry = entries[sub["student_id"]] = {
                "student_id": sub["student_id"],
                "track": sub["track"],
                "total_submissions": 0,
                "total_response_seconds": 0,
            }
        entry["total_submissions"] += 1
        entry["total_response_seconds"] += latency
        entry["name"] = sub.get("student_name", "")
        entry["email"] = sub.get("student_email", "")
        entry["institution"] = sub.get("institution", "")
        entry["last_submission_at"] = sub["submitted_at"]
        entry["updated_at"] = now

    for entry in entries.values():
        entry["average_seconds"] = round_half_up(entry["total_response_seconds"] / entry["total_submissions"])
    return entries


def compute_stats(entries: List[dict], now: datetime) -> dict:
    """Track rollup: student count, submission count, mean of per-student averages."""
    active = [e for e in entries if e.get("total_submissions", 0) >= 1]
    total_students = len(active)
    return {
        "total_students": total_students,
        "total_submissions": sum(e["total_submissions"] for e in active),
        "average_response_seconds": (
            round_half_up(sum(e["average_seconds"] for e in active) / total_students)
            if total_students else 0
        ),
        "last_updated": now,
    }


class LeaderboardAggregator:

    def __init__(
        self,
        entries: LeaderboardStore,
        stats_store: TrackStatsStore,
        cache: TTLCache,
        clock: Callable[[], datetime] = datetime.utcnow,
        min_response_seconds: int = MIN_RESPONSE_SECONDS,
        max_response_seconds: int = MAX_RESPONSE_SECONDS
    ):
        self.entries = entries
        self.stats_store = stats_store
        self.cache = cache
        self.clock = clock
        self.min_response_seconds = min_response_seconds
        self.max_response_seconds = max_response_seconds

    def latency(self, assignment_created_at: datetime, submitted_at: datetime) -> int:
        return response_latency(
            assignment_created_at, submitted_at,
            self.min_response_seconds, self.max_response_seconds
        )

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------

    def record_response(
        self,
        student_id: str,
        track: str,
        latency_seconds: int,
        profile_fields: dict
    ) -> dict:
        """
        Fold one submission's latency into the student's entry.

        The increment is atomic; the average is then written only if the
        count is still the one we saw, so the last concurrent writer wins
        with a consistent value.
        """
        now = self.clock()
        entry = self.entries.increment(track, student_id, latency_seconds, profile_fields, now)

        count = entry["total_submissions"]
        average = round_half_up(entry["total_response_seconds"] / count)
        if self.entries.set_average(track, student_id, count, average):
            entry["average_seconds"] = average
        else:
            logger.info("Leaderboard entry %s/%s moved on before average was written", track, student_id)

        self.refresh_stats(track)
        self.invalidate(track)
        logger.debug("Leaderboard %s/%s: count=%d avg=%ds", track, student_id, count, average)
        return entry

    def refresh_stats(self, track: str) -> dict:
        stats = compute_stats(self.entries.list_for_track(track), self.clock())
        self.stats_store.put(track, stats)
        return dict(stats, track=track)

    def rebuild(self, track: str, submissions: Iterable[dict]) -> List[dict]:
        """Recompute every entry of a track from its raw submissions."""
        track_subs = [s for s in submissions if s.get("track") == track]
        rebuilt = aggregate_submissions(
            track_subs, self.clock(), self.min_response_seconds, self.max_response_seconds
        )
        self.entries.replace_track(track, list(rebuilt.values()))
        self.refresh_stats(track)
        self.invalidate(track)
        logger.info("Rebuilt leaderboard for %s: %d students from %d submissions",
                    track, len(rebuilt), len(track_subs))
        return list(rebuilt.values())

    def invalidate(self, track: Optional[str] = None) -> int:
        return self.cache.invalidate(track)

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def top_students(self, track: str, n: int = 10, skip: int = 0) -> List[dict]:
        """Up to n ranked entries for a track, starting after `skip`."""
        def load():
            rows = self.entries.top(track, n, skip)
            for idx, row in enumerate(rows):
                row["rank"] = skip + idx + 1
            return rows

        rows = self.cache.get_or_load((track, "top", n, skip), load)
        return [dict(r) for r in rows]

    def rank_of(self, student_id: str, track: str) -> dict:
        """
        1-based rank: one plus the peers with a lower average, plus peers on
        the same average with more submissions. rank=0 when unranked.
        """
        entry = self.entries.get(track, student_id)
        if not entry or entry.get("total_submissions", 0) < 1:
            return {"rank": 0, "total": 0, "entry": None}

        rank = 1 + self.entries.count_ahead_of(track, entry["average_seconds"], entry["total_submissions"])
        total = self.entries.count_active(track)
        entry["rank"] = rank
        return {"rank": rank, "total": total, "entry": entry}

    def stats(self, track: str) -> dict:
        def load():
            stored = self.stats_store.get(track)
            if stored:
                return stored
            return dict(compute_stats(self.entries.list_for_track(track), self.clock()), track=track)

        return dict(self.cache.get_or_load((track, "stats"), load))
