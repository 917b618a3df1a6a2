"""
MongoDB Service - CRUD operations for the portal's collections.

Collections in this database:
1. profiles           - Student profiles, one per (track, uid)
2. profile_directory  - uid -> track mapping used to find a profile
3. assignments        - Assignments, one per (track, assignment_id)
4. submissions        - One per (assignment instance, student)
5. submission_index   - Per (track, student) set of submission location keys
6. leaderboard_entries - Rolling per (track, student) response-time aggregate
7. track_stats        - Per-track rollup of the leaderboard

Documents use deterministic string ids built from their logical location,
so "create if absent" is a plain insert that fails on a duplicate _id.
"""

import re
from datetime import datetime
from typing import Optional, List, Dict, Any
from pymongo import ReturnDocument, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from internship_portal.db.mongodb import get_collection, store_errors, COLLECTIONS


# ============================================================
# HELPERS
# ============================================================

def track_key(track: str) -> str:
    """Collapse whitespace so a track name can be used inside ids."""
    return re.sub(r"\s+", "_", track.strip())


def doc_id(*parts: str) -> str:
    return "/".join(parts)


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Drop the storage id; every document carries its logical keys as fields."""
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


def serialize_docs(docs) -> list:
    return [serialize_doc(doc) for doc in docs]


# ============================================================
# PROFILES
# ============================================================

class ProfileStore:
    """
    Profiles are stored under (track, uid). The directory maps a uid to its
    track so a profile can be found without knowing the track up front.
    """

    def __init__(self, db: Optional[Database] = None):
        self.collection: Collection = get_collection(COLLECTIONS["profiles"], db)
        self.directory: Collection = get_collection(COLLECTIONS["profile_directory"], db)

    def get(self, track: str, uid: str) -> Optional[dict]:
        with store_errors("read profile"):
            doc = self.collection.find_one({"_id": doc_id(track_key(track), uid)})
        return serialize_doc(doc)

    def insert(self, profile: dict) -> bool:
        """Insert a profile. Returns False if one already exists at that location."""
        doc = dict(profile, _id=doc_id(track_key(profile["track"]), profile["uid"]))
        try:
            with store_errors("create profile"):
                self.collection.insert_one(doc)
        except DuplicateKeyError:
            return False
        return True

    def get_directory_track(self, uid: str) -> Optional[str]:
        with store_errors("read profile directory"):
            doc = self.directory.find_one({"_id": uid})
        return doc.get("track") if doc else None

    def set_directory_track(self, uid: str, track: str) -> None:
        with store_errors("write profile directory"):
            self.directory.update_one(
                {"_id": uid},
                {"$set": {"track": track, "updated_at": datetime.utcnow()}},
                upsert=True
            )


# ============================================================
# ASSIGNMENTS
# ============================================================

class AssignmentStore:

    def __init__(self, db: Optional[Database] = None):
        self.collection: Collection = get_collection(COLLECTIONS["assignments"], db)

    def insert(self, assignment: dict) -> None:
        doc = dict(assignment, _id=doc_id(track_key(assignment["track"]), assignment["assignment_id"]))
        with store_errors("create assignment"):
            self.collection.insert_one(doc)

    def get(self, track: str, assignment_id: str) -> Optional[dict]:
        with store_errors("read assignment"):
            doc = self.collection.find_one({"_id": doc_id(track_key(track), assignment_id)})
        return serialize_doc(doc)

    def list_all(self, track: Optional[str] = None) -> List[dict]:
        """Assignments newest first, optionally for one track."""
        query = {"track": track} if track else {}
        with store_errors("list assignments"):
            cursor = self.collection.find(query).sort("created_at", DESCENDING)
            return serialize_docs(cursor)


# ============================================================
# SUBMISSIONS
# ============================================================

class SubmissionStore:

    def __init__(self, db: Optional[Database] = None):
        self.collection: Collection = get_collection(COLLECTIONS["submissions"], db)

    def create_if_absent(self, submission: dict) -> bool:
        """
        Insert a submission keyed on (location_key, student_id).
        Returns False when the student already has one at that location.
        """
        doc = dict(submission, _id=doc_id(submission["location_key"], submission["student_id"]))
        try:
            with store_errors("create submission"):
                self.collection.insert_one(doc)
        except DuplicateKeyError:
            return False
        return True

    def get(self, location_key: str, student_id: str) -> Optional[dict]:
        with store_errors("read submission"):
            doc = self.collection.find_one({"_id": doc_id(location_key, student_id)})
        return serialize_doc(doc)

    def exists(self, location_key: str, student_id: str) -> bool:
        with store_errors("check submission"):
            return self.collection.count_documents({"_id": doc_id(location_key, student_id)}, limit=1) > 0

    def list_for_student(self, student_id: str, track: Optional[str] = None) -> List[dict]:
        """A student's submissions, most recent first."""
        query: Dict[str, Any] = {"student_id": student_id}
        if track:
            query["track"] = track
        with store_errors("list student submissions"):
            cursor = self.collection.find(query).sort("submitted_at", DESCENDING)
            return serialize_docs(cursor)

    def list_all(self, track: Optional[str] = None, kind: Optional[str] = None) -> List[dict]:
        """All submissions (staff view), most recent first."""
        query: Dict[str, Any] = {}
        if track:
            query["track"] = track
        if kind:
            query["kind"] = kind
        with store_errors("list submissions"):
            cursor = self.collection.find(query).sort("submitted_at", DESCENDING)
            return serialize_docs(cursor)


class SubmissionIndexStore:
    """Per-student list of submission location keys. Append-only set."""

    def __init__(self, db: Optional[Database] = None):
        self.collection: Collection = get_collection(COLLECTIONS["submission_index"], db)

    def add(self, track: str, student_id: str, location_key: str) -> None:
        with store_errors("append submission index"):
            self.collection.update_one(
                {"_id": doc_id(track_key(track), student_id)},
                {
                    "$addToSet": {"keys": location_key},
                    "$setOnInsert": {"track": track, "student_id": student_id},
                },
                upsert=True
            )

    def get_keys(self, track: str, student_id: str) -> List[str]:
        with store_errors("read submission index"):
            doc = self.collection.find_one({"_id": doc_id(track_key(track), student_id)})
        return list(doc.get("keys", [])) if doc else []


# ============================================================
# LEADERBOARD
# ============================================================

class LeaderboardStore:

    def __init__(self, db: Optional[Database] = None):
        self.collection: Collection = get_collection(COLLECTIONS["leaderboard"], db)

    def increment(
        self,
        track: str,
        student_id: str,
        latency_seconds: int,
        profile_fields: dict,
        now: datetime
    ) -> dict:
        """
        Atomically bump count and cumulative seconds, creating the entry on
        first use. Returns the entry after the update.

        Two first upserts for the same student can race on the _id; the
        loser retries once and then finds the entry to update.
        """
        try:
            return self._increment(track, student_id, latency_seconds, profile_fields, now)
        except DuplicateKeyError:
            return self._increment(track, student_id, latency_seconds, profile_fields, now)

    def _increment(
        self,
        track: str,
        student_id: str,
        latency_seconds: int,
        profile_fields: dict,
        now: datetime
    ) -> dict:
        with store_errors("update leaderboard entry"):
            doc = self.collection.find_one_and_update(
                {"_id": doc_id(track_key(track), student_id)},
                {
                    "$inc": {"total_submissions": 1, "total_response_seconds": latency_seconds},
                    "$set": {
                        "name": profile_fields.get("name", ""),
                        "email": profile_fields.get("email", ""),
                        "institution": profile_fields.get("institution", ""),
                        "last_submission_at": now,
                        "updated_at": now,
                    },
                    "$setOnInsert": {
                        "student_id": student_id,
                        "track": track,
                        "average_seconds": latency_seconds,
                    },
                },
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
        return serialize_doc(doc)

    def set_average(self, track: str, student_id: str, expected_count: int, average_seconds: int) -> bool:
        """Store a derived average, only if no other increment landed meanwhile."""
        with store_errors("update leaderboard average"):
            result = self.collection.update_one(
                {"_id": doc_id(track_key(track), student_id), "total_submissions": expected_count},
                {"$set": {"average_seconds": average_seconds}}
            )
        return result.matched_count > 0

    def get(self, track: str, student_id: str) -> Optional[dict]:
        with store_errors("read leaderboard entry"):
            doc = self.collection.find_one({"_id": doc_id(track_key(track), student_id)})
        return serialize_doc(doc)

    def top(self, track: str, limit: int, skip: int = 0) -> List[dict]:
        with store_errors("read leaderboard"):
            cursor = (
                self.collection.find({"track": track, "total_submissions": {"$gte": 1}})
                .sort([
                    ("average_seconds", ASCENDING),
                    ("total_submissions", DESCENDING),
                    ("student_id", ASCENDING),
                ])
                .skip(skip)
                .limit(limit)
            )
            return serialize_docs(cursor)

    def count_ahead_of(self, track: str, average_seconds: int, total_submissions: int) -> int:
        """Entries with a lower average, or the same average and more submissions."""
        with store_errors("rank leaderboard entry"):
            return self.collection.count_documents({
                "track": track,
                "total_submissions": {"$gte": 1},
                "$or": [
                    {"average_seconds": {"$lt": average_seconds}},
                    {"average_seconds": average_seconds, "total_submissions": {"$gt": total_submissions}},
                ],
            })

    def count_active(self, track: str) -> int:
        with store_errors("count leaderboard entries"):
            return self.collection.count_documents({"track": track, "total_submissions": {"$gte": 1}})

    def list_for_track(self, track: str) -> List[dict]:
        with store_errors("list leaderboard entries"):
            return serialize_docs(self.collection.find({"track": track, "total_submissions": {"$gte": 1}}))

    def replace_track(self, track: str, entries: List[dict]) -> None:
        """
        Swap every entry of a track for freshly computed ones.

        Delete then insert is not atomic: a record_response landing between
        the two (or after the caller read its submissions) is lost from the
        entries. The submission itself stands, so the next reconcile of the
        track restores it.
        """
        docs = [dict(e, _id=doc_id(track_key(track), e["student_id"])) for e in entries]
        with store_errors("rebuild leaderboard"):
            self.collection.delete_many({"track": track})
            if docs:
                self.collection.insert_many(docs)


class TrackStatsStore:

    def __init__(self, db: Optional[Database] = None):
        self.collection: Collection = get_collection(COLLECTIONS["track_stats"], db)

    def get(self, track: str) -> Optional[dict]:
        with store_errors("read track stats"):
            doc = self.collection.find_one({"_id": track_key(track)})
        return serialize_doc(doc)

    def put(self, track: str, stats: dict) -> None:
        with store_errors("write track stats"):
            self.collection.replace_one(
                {"_id": track_key(track)},
                dict(stats, track=track, _id=track_key(track)),
                upsert=True
            )
