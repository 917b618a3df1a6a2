"""
Authentication Routes

GET /auth/me - Current principal and whether onboarding is still needed

Sign-in and sign-out happen against the identity provider; this API only
verifies the tokens it issues.
"""

from fastapi import APIRouter, Depends

from internship_portal.core.auth import get_current_principal, is_staff
from internship_portal.api.dependencies import get_profile_service
from internship_portal.services.profile_service import ProfileService
from internship_portal.schemas.schemas import PrincipalResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=PrincipalResponse)
def get_me(
    principal: dict = Depends(get_current_principal),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Get the signed-in principal. `needs_onboarding` is true until a profile exists."""
    staff = is_staff(principal)
    needs_onboarding = False if staff else profiles.find(principal["uid"]) is None
    return PrincipalResponse(
        uid=principal["uid"],
        email=principal["email"],
        display_name=principal["display_name"],
        photo_url=principal["photo_url"],
        is_staff=staff,
        needs_onboarding=needs_onboarding,
    )
