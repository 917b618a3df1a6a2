"""
Student Routes

POST /students/profile - Complete onboarding
GET /students/profile - Get own profile
GET /students/assignments - Open assignments for own track
POST /students/submissions - Upload a file and submit an assignment
GET /students/submissions - Own submission history
GET /students/leaderboard - Track leaderboard with own rank
GET /students/uploads/formats - Accepted upload formats
"""

import logging
from fastapi import APIRouter, Depends, UploadFile, File, Form, Query
from typing import List

from internship_portal.core.auth import get_current_principal
from internship_portal.core.exceptions import AlreadySubmitted
from internship_portal.api.dependencies import (
    get_profile_service, get_assignment_service, get_submission_recorder,
    get_leaderboard, get_file_host, get_current_student
)
from internship_portal.services.profile_service import ProfileService
from internship_portal.services.assignment_service import AssignmentService
from internship_portal.services.submission_service import SubmissionRecorder, SubmissionCandidate
from internship_portal.services.leaderboard_service import LeaderboardAggregator
from internship_portal.services.drive_client import GoogleDriveClient
from internship_portal.utils.file_upload import read_upload, get_supported_formats
from internship_portal.schemas.schemas import (
    ProfileCreate, ProfileResponse, StudentAssignmentResponse, SubmissionResponse,
    SubmissionReceiptResponse, StudentLeaderboardResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/students", tags=["Students"])


@router.post("/profile", response_model=ProfileResponse, status_code=201)
def create_profile(
    data: ProfileCreate,
    principal: dict = Depends(get_current_principal),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Create the student profile. Only possible once per account."""
    return profiles.onboard(principal, data.name, data.institution, data.track)


@router.get("/profile", response_model=ProfileResponse)
def get_profile(student: dict = Depends(get_current_student)):
    """Get current student's profile. 404 PROFILE_NOT_FOUND means onboard first."""
    return student


@router.get("/assignments", response_model=List[StudentAssignmentResponse])
def list_assignments(
    student: dict = Depends(get_current_student),
    assignments: AssignmentService = Depends(get_assignment_service),
    recorder: SubmissionRecorder = Depends(get_submission_recorder)
):
    """Assignments still open for the student's track, newest first."""
    return [
        StudentAssignmentResponse(**a, submitted=recorder.has_submitted(student["uid"], a))
        for a in assignments.list_open(student["track"])
    ]


@router.post("/submissions", response_model=SubmissionReceiptResponse, status_code=201)
def submit_assignment(
    assignment_id: str = Form(...),
    description: str = Form(""),
    file: UploadFile = File(..., description="Assignment file"),
    student: dict = Depends(get_current_student),
    assignments: AssignmentService = Depends(get_assignment_service),
    recorder: SubmissionRecorder = Depends(get_submission_recorder),
    file_host: GoogleDriveClient = Depends(get_file_host)
):
    """
    Submit an assignment.

    Process:
    1. Validate the file
    2. Check the assignment exists and hasn't been submitted yet
    3. Upload to Drive
    4. Record the submission, index it, update the leaderboard
    """
    content, filename, mime_type = read_upload(file)

    # Fail fast before spending an upload on a request that can't succeed
    assignment = assignments.get(student["track"], assignment_id)
    if recorder.has_submitted(student["uid"], assignment):
        raise AlreadySubmitted(assignment_id, student["uid"])

    file_url = file_host.upload(filename, content, mime_type)

    try:
        receipt = recorder.record(SubmissionCandidate(
            assignment_id=assignment_id,
            file_url=file_url,
            profile=student,
            description=description,
            assignment_created_at=assignment["created_at"],
        ))
    except AlreadySubmitted:
        # A parallel request won between the check and the write
        logger.warning("Orphaned upload for %s on %s: %s", student["uid"], assignment_id, file_url)
        raise

    message = "Submission uploaded!"
    if not (receipt.index_updated and receipt.leaderboard_updated):
        message = "Submission uploaded. Leaderboard will catch up shortly."

    return SubmissionReceiptResponse(
        message=message,
        submission=SubmissionResponse(**receipt.submission),
        latency_seconds=receipt.latency_seconds,
        index_updated=receipt.index_updated,
        leaderboard_updated=receipt.leaderboard_updated,
    )


@router.get("/submissions", response_model=List[SubmissionResponse])
def get_my_submissions(
    student: dict = Depends(get_current_student),
    recorder: SubmissionRecorder = Depends(get_submission_recorder)
):
    """All submissions for current student, most recent first."""
    return recorder.history(student["uid"])


@router.get("/leaderboard", response_model=StudentLeaderboardResponse)
def get_leaderboard_for_student(
    limit: int = Query(10, ge=1, le=100),
    student: dict = Depends(get_current_student),
    leaderboard: LeaderboardAggregator = Depends(get_leaderboard)
):
    """Top students in own track, own rank and track stats."""
    track = student["track"]
    return StudentLeaderboardResponse(
        track=track,
        top=leaderboard.top_students(track, limit),
        me=leaderboard.rank_of(student["uid"], track),
        stats=leaderboard.stats(track),
    )


@router.get("/uploads/formats")
def upload_formats():
    """Get accepted upload formats."""
    return get_supported_formats()
