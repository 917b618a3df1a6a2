"""
Submission Service - record submissions and read them back.

Recording a submission is a short saga, not a transaction:
1. create the submission document if absent (the duplicate guard)
2. append its location key to the student's submission index
3. fold the response latency into the leaderboard

Step 1 is the only one that decides the outcome. Steps 2 and 3 are
idempotent bookkeeping; if they fail the submission still stands, the
receipt says what lagged, and ``reconcile`` repairs it from the raw
submissions.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from internship_portal.core.exceptions import AlreadySubmitted, ValidationError
from internship_portal.services.assignment_service import AssignmentService
from internship_portal.services.leaderboard_service import LeaderboardAggregator
from internship_portal.services.mongo_service import SubmissionStore, SubmissionIndexStore, track_key

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)

EXPORT_COLUMNS = ["Date", "Student Name", "Email", "Institution", "Track", "Kind", "Title", "File Link"]


def location_key(track: str, assignment_id: str, assignment_created_at: datetime) -> str:
    """
    Where every student's submission for one assignment instance lives.
    Bucketed by the day the assignment was created, so timestamp precision
    differences on read-back map to the same key.
    """
    return f"{track_key(track)}_{assignment_id}_{assignment_created_at.strftime('%Y-%m-%d')}"


@dataclass
class SubmissionCandidate:
    """A completed upload waiting to be recorded."""
    assignment_id: str
    file_url: str
    profile: dict
    description: str = ""
    assignment_created_at: Optional[datetime] = None


@dataclass
class SubmissionReceipt:
    submission: dict
    location_key: str
    latency_seconds: int
    index_updated: bool = True
    leaderboard_updated: bool = True
    leaderboard_entry: Optional[dict] = field(default=None, repr=False)


class SubmissionRecorder:

    def __init__(
        self,
        submissions: SubmissionStore,
        index: SubmissionIndexStore,
        assignments: AssignmentService,
        leaderboard: LeaderboardAggregator,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.submissions = submissions
        self.index = index
        self.assignments = assignments
        self.leaderboard = leaderboard
        self.clock = clock

    # ------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------

    @staticmethod
    def validate(candidate: SubmissionCandidate) -> None:
        if not candidate.assignment_id:
            raise ValidationError("Assignment is required")
        if not candidate.file_url:
            raise ValidationError("Please upload a file")
        profile = candidate.profile or {}
        missing = [f for f in ("uid", "name", "email", "track") if not profile.get(f)]
        if missing:
            raise ValidationError(f"Profile is missing: {', '.join(missing)}")

    def record(self, candidate: SubmissionCandidate) -> SubmissionReceipt:
        """
        Record one submission.

        Raises ValidationError, AssignmentNotFound or AlreadySubmitted before
        any write; CollaboratorUnavailable if the submission write fails.
        """
        self.validate(candidate)
        profile = candidate.profile
        student_id = profile["uid"]
        track = profile["track"]

        assignment = self.assignments.get(track, candidate.assignment_id)
        created_at = assignment["created_at"]
        if candidate.assignment_created_at and candidate.assignment_created_at.date() != created_at.date():
            logger.warning(
                "Candidate for %s carried creation date %s, stored assignment says %s",
                candidate.assignment_id, candidate.assignment_created_at.date(), created_at.date()
            )

        key = location_key(track, assignment["assignment_id"], created_at)
        submitted_at = self.clock()
        submission = {
            "location_key": key,
            "student_id": student_id,
            "student_name": profile["name"],
            "student_email": profile["email"],
            "institution": profile.get("institution", ""),
            "track": track,
            "assignment_id": assignment["assignment_id"],
            "assignment_created_at": created_at,
            "title": assignment["title"],
            "kind": assignment["kind"],
            "description": candidate.description or "",
            "file_url": candidate.file_url,
            "status": "submitted",
            "submitted_at": submitted_at,
        }
        if not self.submissions.create_if_absent(submission):
            logger.info("Duplicate submission blocked: %s for %s", student_id, key)
            raise AlreadySubmitted(assignment["assignment_id"], student_id)

        latency = self.leaderboard.latency(created_at, submitted_at)
        receipt = SubmissionReceipt(submission=submission, location_key=key, latency_seconds=latency)

        try:
            self.index.add(track, student_id, key)
        except Exception:
            receipt.index_updated = False
            logger.exception("Submission %s/%s recorded but index append failed", key, student_id)

        try:
            receipt.leaderboard_entry = self.leaderboard.record_response(
                student_id, track, latency,
                {"name": profile["name"], "email": profile["email"], "institution": profile.get("institution", "")}
            )
        except Exception:
            receipt.leaderboard_updated = False
            logger.exception("Submission %s/%s recorded but leaderboard update failed", key, student_id)

        logger.info("Recorded submission %s for %s (latency %ds)", key, student_id, latency)
        return receipt

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def history(self, student_id: str, track: Optional[str] = None) -> List[dict]:
        return self.submissions.list_for_student(student_id, track)

    def has_submitted(self, student_id: str, assignment: dict) -> bool:
        key = location_key(assignment["track"], assignment["assignment_id"], assignment["created_at"])
        return self.submissions.exists(key, student_id)

    def list_all(
        self,
        track: Optional[str] = None,
        kind: Optional[str] = None,
        search: Optional[str] = None
    ) -> List[dict]:
        subs = self.submissions.list_all(track, kind)
        if search:
            needle = search.lower()
            subs = [
                s for s in subs
                if needle in s.get("student_name", "").lower() or needle in s.get("student_email", "").lower()
            ]
        return subs

    def overview(self, submissions: List[dict], search: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        """Staff dashboard: totals plus submissions grouped per student."""
        now = now or self.clock()
        recent_since = now - RECENT_WINDOW

        groups: Dict[str, dict] = {}
        classwork = homework = recent = 0
        for sub in submissions:
            if sub.get("kind") == "classwork":
                classwork += 1
            else:
                homework += 1
            submitted_at = sub.get("submitted_at")
            if submitted_at and submitted_at > recent_since:
                recent += 1

            group = groups.get(sub["student_id"])
            if group is None:
                group = groups[sub["student_id"]] = {
                    "student_id": sub["student_id"],
                    "student_name": sub.get("student_name") or "Unknown User",
                    "student_email": sub.get("student_email", ""),
                    "track": sub.get("track", ""),
                    "submissions": [],
                    "total_submissions": 0,
                    "latest_submission_at": None,
                }
            group["submissions"].append(sub)
            group["total_submissions"] += 1
            if submitted_at and (group["latest_submission_at"] is None or submitted_at > group["latest_submission_at"]):
                group["latest_submission_at"] = submitted_at

        ordered = sorted(groups.values(), key=lambda g: g["student_name"].lower())
        for group in ordered:
            group["submissions"].sort(key=lambda s: s.get("submitted_at") or datetime.min, reverse=True)

        if search:
            needle = search.lower()
            ordered = [
                g for g in ordered
                if needle in g["student_name"].lower() or needle in g["student_email"].lower()
            ]

        return {
            "stats": {
                "total_students": len(groups),
                "total_submissions": len(submissions),
                "classwork_count": classwork,
                "homework_count": homework,
                "recent_submissions": recent,
            },
            "groups": ordered,
        }

    @staticmethod
    def export_csv(submissions: List[dict]) -> str:
        """Spreadsheet export of submission records."""
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS)
        for sub in submissions:
            submitted_at = sub.get("submitted_at")
            writer.writerow([
                submitted_at.strftime("%Y-%m-%d %H:%M") if submitted_at else "",
                sub.get("student_name", ""),
                sub.get("student_email", ""),
                sub.get("institution", ""),
                sub.get("track", ""),
                sub.get("kind", ""),
                sub.get("title", ""),
                sub.get("file_url", ""),
            ])
        return buffer.getvalue()

    # ------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------

    def reconcile_index(self, track: str, submissions: Optional[List[dict]] = None) -> int:
        """Re-append every submission's key to its owner's index. Returns students touched."""
        submissions = submissions if submissions is not None else self.submissions.list_all(track)
        students = set()
        for sub in submissions:
            self.index.add(track, sub["student_id"], sub["location_key"])
            students.add(sub["student_id"])
        return len(students)

    def reconcile(self, track: str) -> dict:
        """Repair the index and rebuild the leaderboard for a track."""
        submissions = self.submissions.list_all(track)
        students = self.reconcile_index(track, submissions)
        entries = self.leaderboard.rebuild(track, submissions)
        logger.info("Reconciled %s: %d submissions, %d students", track, len(submissions), students)
        return {
            "track": track,
            "submissions": len(submissions),
            "index_documents": students,
            "leaderboard_entries": len(entries),
        }
