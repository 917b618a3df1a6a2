"""
MongoDB Connection Utility

MongoDB stores everything the portal owns:
- Student profiles (partitioned by track) and the uid -> track directory
- Assignments
- Submissions and the per-student submission index
- Leaderboard entries and per-track stats

Single-document writes are atomic; nothing here spans documents.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from internship_portal.core.config import get_settings
from internship_portal.core.exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(get_settings().mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the portal database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[get_settings().mongodb_db]
    return _db


def get_collection(name: str, db: Optional[Database] = None) -> Collection:
    """
    Get a specific collection, from the given database or the default one.
    Collection names live in COLLECTIONS.
    """
    db = db if db is not None else get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except PyMongoError as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


@contextmanager
def store_errors(operation: str):
    """
    Map driver failures onto CollaboratorUnavailable.

    DuplicateKeyError passes through untouched: callers doing a
    create-if-absent insert need to see it.
    """
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.error("Document store failure during %s: %s", operation, e, exc_info=True)
        raise CollaboratorUnavailable("Document store", operation) from e


# Collection name constants (avoid typos)
COLLECTIONS = {
    "profiles": "profiles",
    "profile_directory": "profile_directory",
    "assignments": "assignments",
    "submissions": "submissions",
    "submission_index": "submission_index",
    "leaderboard": "leaderboard_entries",
    "track_stats": "track_stats",
}


def init_mongo_indexes(db: Optional[Database] = None):
    """
    Create indexes for the queries the portal runs.
    Call this once during app startup.
    """
    db = db if db is not None else get_mongo_db()

    db[COLLECTIONS["profiles"]].create_index("uid")

    db[COLLECTIONS["assignments"]].create_index([("track", ASCENDING), ("created_at", DESCENDING)])

    # History and admin listings
    db[COLLECTIONS["submissions"]].create_index([("student_id", ASCENDING), ("submitted_at", DESCENDING)])
    db[COLLECTIONS["submissions"]].create_index([("track", ASCENDING), ("submitted_at", DESCENDING)])
    db[COLLECTIONS["submissions"]].create_index("location_key")

    # Ranking order: fastest average first, more submissions breaks ties
    db[COLLECTIONS["leaderboard"]].create_index([
        ("track", ASCENDING),
        ("average_seconds", ASCENDING),
        ("total_submissions", DESCENDING),
    ])

    logger.info("MongoDB indexes created successfully")
