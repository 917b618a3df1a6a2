"""
Assignment Service - staff create assignments, students see the open ones.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from internship_portal.core.exceptions import AssignmentNotFound, ValidationError
from internship_portal.services.mongo_service import AssignmentStore

logger = logging.getLogger(__name__)

ASSIGNMENT_KINDS = ("classwork", "homework")


class AssignmentService:

    def __init__(
        self,
        store: AssignmentStore,
        tracks: List[str],
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.store = store
        self.tracks = list(tracks)
        self.clock = clock

    def create(
        self,
        track: str,
        title: str,
        kind: str = "homework",
        description: str = "",
        deadline: Optional[datetime] = None,
        created_by: Optional[str] = None
    ) -> dict:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if track not in self.tracks:
            raise ValidationError(f"Unknown track '{track}'")
        if kind not in ASSIGNMENT_KINDS:
            raise ValidationError(f"Kind must be one of: {', '.join(ASSIGNMENT_KINDS)}")

        assignment = {
            "assignment_id": f"ASG_{uuid.uuid4().hex[:12].upper()}",
            "title": title,
            "kind": kind,
            "track": track,
            "description": description or "",
            "deadline": deadline,
            "created_at": self.clock(),
            "created_by": created_by,
        }
        self.store.insert(assignment)
        logger.info("Created assignment %s (%s) for %s", assignment["assignment_id"], kind, track)
        return assignment

    def get(self, track: str, assignment_id: str) -> dict:
        assignment = self.store.get(track, assignment_id)
        if assignment is None:
            raise AssignmentNotFound(assignment_id, track)
        return assignment

    def list_open(self, track: str, now: Optional[datetime] = None) -> List[dict]:
        """Assignments a student can still submit: no deadline, or deadline not passed."""
        now = now or self.clock()
        return [
            a for a in self.store.list_all(track)
            if a.get("deadline") is None or a["deadline"] >= now
        ]

    def list_all(self, track: Optional[str] = None) -> List[dict]:
        return self.store.list_all(track)
