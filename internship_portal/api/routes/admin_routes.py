"""
Admin Routes (staff role claim required)

POST /admin/assignments - Create assignment
GET /admin/assignments - List assignments
GET /admin/submissions - Submission overview grouped by student
GET /admin/submissions/export - CSV export of submissions
GET /admin/leaderboard/{track} - Ranked students (paged)
GET /admin/leaderboard/{track}/stats - Track stats
POST /admin/leaderboard/{track}/rebuild - Recompute leaderboard from submissions
POST /admin/tracks/{track}/reconcile - Repair submission index and leaderboard
"""

from datetime import datetime
from fastapi import APIRouter, Depends, Query, Response
from typing import List, Optional

from internship_portal.core.auth import require_staff
from internship_portal.core.config import get_settings
from internship_portal.core.exceptions import ValidationError
from internship_portal.api.dependencies import (
    get_assignment_service, get_submission_recorder, get_leaderboard
)
from internship_portal.services.assignment_service import AssignmentService
from internship_portal.services.submission_service import SubmissionRecorder
from internship_portal.services.leaderboard_service import LeaderboardAggregator
from internship_portal.schemas.schemas import (
    AssignmentCreate, AssignmentResponse, AssignmentKind, AdminOverviewResponse,
    LeaderboardEntryResponse, TrackStatsResponse, ReconcileResponse
)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_staff)])


def _known_track(track: str) -> str:
    if track not in get_settings().tracks:
        raise ValidationError(f"Unknown track '{track}'")
    return track


@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
def create_assignment(
    data: AssignmentCreate,
    staff: dict = Depends(require_staff),
    assignments: AssignmentService = Depends(get_assignment_service)
):
    """Create an assignment for one track."""
    return assignments.create(
        track=data.track,
        title=data.title,
        kind=data.kind.value,
        description=data.description,
        deadline=data.deadline,
        created_by=staff["uid"],
    )


@router.get("/assignments", response_model=List[AssignmentResponse])
def list_assignments(
    track: Optional[str] = Query(None),
    assignments: AssignmentService = Depends(get_assignment_service)
):
    return assignments.list_all(track)


@router.get("/submissions", response_model=AdminOverviewResponse)
def submission_overview(
    track: Optional[str] = Query(None),
    kind: Optional[AssignmentKind] = Query(None),
    search: Optional[str] = Query(None, description="Match student name or email"),
    recorder: SubmissionRecorder = Depends(get_submission_recorder)
):
    """All submissions grouped per student, with dashboard totals."""
    submissions = recorder.list_all(track, kind.value if kind else None)
    return recorder.overview(submissions, search=search)


@router.get("/submissions/export")
def export_submissions(
    track: Optional[str] = Query(None),
    kind: Optional[AssignmentKind] = Query(None),
    search: Optional[str] = Query(None),
    recorder: SubmissionRecorder = Depends(get_submission_recorder)
):
    """Download submissions as CSV."""
    submissions = recorder.list_all(track, kind.value if kind else None, search)
    filename = f"submissions_{datetime.utcnow().strftime('%Y%m%d')}.csv"
    return Response(
        content=recorder.export_csv(submissions),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/leaderboard/{track}", response_model=List[LeaderboardEntryResponse])
def track_leaderboard(
    track: str,
    limit: int = Query(10, ge=1, le=100),
    skip: int = Query(0, ge=0, le=1000),
    leaderboard: LeaderboardAggregator = Depends(get_leaderboard)
):
    return leaderboard.top_students(_known_track(track), limit, skip)


@router.get("/leaderboard/{track}/stats", response_model=TrackStatsResponse)
def track_stats(track: str, leaderboard: LeaderboardAggregator = Depends(get_leaderboard)):
    return leaderboard.stats(_known_track(track))


@router.post("/leaderboard/{track}/rebuild", response_model=List[LeaderboardEntryResponse])
def rebuild_leaderboard(
    track: str,
    recorder: SubmissionRecorder = Depends(get_submission_recorder),
    leaderboard: LeaderboardAggregator = Depends(get_leaderboard)
):
    """Recompute every leaderboard entry of a track from raw submissions."""
    track = _known_track(track)
    return leaderboard.rebuild(track, recorder.list_all(track))


@router.post("/tracks/{track}/reconcile", response_model=ReconcileResponse)
def reconcile_track(track: str, recorder: SubmissionRecorder = Depends(get_submission_recorder)):
    """Re-append index keys and rebuild the leaderboard for a track."""
    return recorder.reconcile(_known_track(track))
