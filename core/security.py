"""
Bearer token handling.

Accounts are created by the identity provider; this API only verifies
HS256 tokens signed with SECRET_KEY and reads the user id from "sub".
SECRET_KEY comes from the environment and must be at least 32 characters.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import JWTError, jwt

from core.config import settings

ALGORITHM = "HS256"
TOKEN_TTL = timedelta(days=30)

if len(settings.SECRET_KEY) < 32:
    raise ValueError(
        "SECRET_KEY must be at least 32 characters "
        "(python -c \"import secrets; print(secrets.token_urlsafe(32))\")"
    )


def create_access_token(claims: Dict, ttl: Optional[timedelta] = None) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + (ttl or TOKEN_TTL)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict]:
    """Claims of a valid, unexpired token; None otherwise."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def get_user_id_from_token(token: str) -> Optional[str]:
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    return str(payload["sub"])
