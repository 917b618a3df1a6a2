"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class AssignmentKind(str, Enum):
    classwork = "classwork"
    homework = "homework"


class SubmissionStatus(str, Enum):
    submitted = "submitted"


# ============================================================
# AUTH / PROFILE SCHEMAS
# ============================================================

class PrincipalResponse(BaseModel):
    uid: str
    email: str
    display_name: str = ""
    photo_url: Optional[str] = None
    is_staff: bool = False
    needs_onboarding: bool = True


class ProfileCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    institution: str = Field(..., min_length=2, max_length=200)
    track: str

class ProfileResponse(BaseModel):
    uid: str
    name: str
    institution: str
    track: str
    email: str
    created_at: datetime


# ============================================================
# ASSIGNMENT SCHEMAS
# ============================================================

class AssignmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    kind: AssignmentKind = AssignmentKind.homework
    track: str
    description: str = ""
    deadline: Optional[datetime] = None

class AssignmentResponse(BaseModel):
    assignment_id: str
    title: str
    kind: AssignmentKind
    track: str
    description: str = ""
    deadline: Optional[datetime] = None
    created_at: datetime

class StudentAssignmentResponse(AssignmentResponse):
    submitted: bool = False


# ============================================================
# SUBMISSION SCHEMAS
# ============================================================

class SubmissionResponse(BaseModel):
    student_id: str
    student_name: str
    student_email: str
    institution: str = ""
    track: str
    assignment_id: str
    assignment_created_at: datetime
    title: str
    kind: AssignmentKind
    description: str = ""
    file_url: str
    status: SubmissionStatus = SubmissionStatus.submitted
    submitted_at: datetime
    location_key: str

class SubmissionReceiptResponse(BaseModel):
    message: str
    submission: SubmissionResponse
    latency_seconds: int
    index_updated: bool
    leaderboard_updated: bool

class SubmissionGroup(BaseModel):
    student_id: str
    student_name: str
    student_email: str
    track: str = ""
    total_submissions: int
    latest_submission_at: Optional[datetime] = None
    submissions: List[SubmissionResponse]

class AdminStats(BaseModel):
    total_students: int
    total_submissions: int
    classwork_count: int
    homework_count: int
    recent_submissions: int

class AdminOverviewResponse(BaseModel):
    stats: AdminStats
    groups: List[SubmissionGroup]


# ============================================================
# LEADERBOARD SCHEMAS
# ============================================================

class LeaderboardEntryResponse(BaseModel):
    student_id: str
    name: str = ""
    email: str = ""
    institution: str = ""
    track: str
    total_submissions: int
    total_response_seconds: int
    average_seconds: int
    last_submission_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    rank: Optional[int] = None

class RankResponse(BaseModel):
    rank: int
    total: int
    entry: Optional[LeaderboardEntryResponse] = None

class TrackStatsResponse(BaseModel):
    track: str
    total_students: int
    total_submissions: int
    average_response_seconds: int
    last_updated: Optional[datetime] = None

class StudentLeaderboardResponse(BaseModel):
    track: str
    top: List[LeaderboardEntryResponse]
    me: RankResponse
    stats: TrackStatsResponse

class ReconcileResponse(BaseModel):
    track: str
    submissions: int
    index_documents: int
    leaderboard_entries: int

