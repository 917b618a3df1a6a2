"""
Portal exceptions.

Every failure the portal can report carries an HTTP status and a stable
``error_code`` so the client can tell "go to onboarding" apart from
"retry later".
"""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class PortalError(HTTPException):
    """Base class for portal errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str,
        headers: Optional[Dict[str, str]] = None,
        extra: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.extra = extra or {}


class CollaboratorUnavailable(PortalError):
    """Document store, identity provider or file host failed. Retryable."""

    def __init__(self, collaborator: str, operation: str):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{collaborator} unavailable during '{operation}'. Please retry.",
            error_code="COLLABORATOR_UNAVAILABLE",
            extra={"collaborator": collaborator, "operation": operation}
        )


class ProfileNotFound(PortalError):
    def __init__(self, uid: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found. Complete onboarding first.",
            error_code="PROFILE_NOT_FOUND",
            extra={"uid": uid}
        )


class ProfileAlreadyExists(PortalError):
    def __init__(self, uid: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Profile already exists",
            error_code="PROFILE_EXISTS",
            extra={"uid": uid}
        )


class AssignmentNotFound(PortalError):
    def __init__(self, assignment_id: str, track: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Assignment '{assignment_id}' not found in track '{track}'",
            error_code="ASSIGNMENT_NOT_FOUND",
            extra={"assignment_id": assignment_id, "track": track}
        )


class AlreadySubmitted(PortalError):
    def __init__(self, assignment_id: str, student_id: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already submitted this assignment",
            error_code="ALREADY_SUBMITTED",
            extra={"assignment_id": assignment_id, "student_id": student_id}
        )


class ValidationError(PortalError):
    """Missing or malformed input, caught before any collaborator call."""

    def __init__(self, message: str, status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY):
        super().__init__(
            status_code=status_code,
            detail=message,
            error_code="VALIDATION_ERROR"
        )


class AuthenticationError(PortalError):
    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="AUTHENTICATION_FAILED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthorizationError(PortalError):
    def __init__(self, detail: str = "Not authorized to perform this action"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="AUTHORIZATION_FAILED"
        )
