"""
FastAPI dependencies for the caller's identity.

get_current_user_id   any valid bearer token (401 otherwise)
get_current_profile   the caller's profile row (404 if not provisioned)
require_coach         coach-only routes (403 for clients)
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from core.security import get_user_id_from_token
from models import Profile

# auto_error=False so a missing header is a 401 rather than FastAPI's 403.
bearer = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> str:
    if not credentials:
        raise UnauthorizedError()
    user_id = get_user_id_from_token(credentials.credentials)
    if not user_id:
        raise UnauthorizedError("Invalid or expired token")
    return user_id


def get_current_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if not profile:
        raise NotFoundError("Profile", user_id)
    return profile


def require_coach(profile: Profile = Depends(get_current_profile)) -> Profile:
    if not profile.is_coach:
        raise ForbiddenError("Coach access required")
    return profile
