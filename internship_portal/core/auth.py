"""
Authentication Utility - identity tokens and the staff gate.

Students and staff both sign in through the identity provider, which issues
signed JWTs. This module:
- Verifies bearer tokens and turns them into a principal dict
- Gates staff-only routes on a role claim
- Issues tokens (used by local tooling and tests)
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from internship_portal.core.config import get_settings
from internship_portal.core.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed identity token."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=1))
    to_encode.update({"exp": expire})
    if settings.identity_jwt_audience and "aud" not in to_encode:
        to_encode["aud"] = settings.identity_jwt_audience
    return jwt.encode(to_encode, settings.identity_jwt_secret, algorithm=settings.identity_jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify an identity token."""
    settings = get_settings()
    try:
        if settings.identity_jwt_audience:
            return jwt.decode(
                token,
                settings.identity_jwt_secret,
                algorithms=[settings.identity_jwt_algorithm],
                audience=settings.identity_jwt_audience,
            )
        return jwt.decode(
            token,
            settings.identity_jwt_secret,
            algorithms=[settings.identity_jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.info("Rejected identity token: %s", e)
        return None


def principal_from_claims(payload: dict) -> dict:
    """Map identity claims onto the principal shape used across the portal."""
    settings = get_settings()
    return {
        "uid": payload["sub"],
        "email": payload.get("email", ""),
        "display_name": payload.get("name") or payload.get("display_name") or "",
        "photo_url": payload.get("picture"),
        "role": payload.get(settings.staff_role_claim),
    }


def is_staff(principal: dict) -> bool:
    return principal.get("role") == get_settings().staff_role_value


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """
    FastAPI dependency - Get the signed-in principal.

    Usage:
        @app.get("/protected")
        async def route(principal: dict = Depends(get_current_principal)):
            return principal
    """
    if credentials is None:
        raise AuthenticationError("No authorization token provided")

    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise AuthenticationError()

    return principal_from_claims(payload)


async def require_staff(principal: dict = Depends(get_current_principal)) -> dict:
    """Dependency - Require the staff role claim."""
    if not is_staff(principal):
        raise AuthorizationError("Staff only")
    return principal
