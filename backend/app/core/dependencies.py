"""
Authentication dependencies for FastAPI.

Tokens are minted by the login service; this module only verifies them
and hands the claims to the route. Claims used downstream:

    sub         acting identity, recorded on audit entries
    role        one of UserRole, checked by the guards
    enrollment  wallet account of a USER token
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from backend.app.core.jwt import decode_access_token

# Missing credentials are answered below with 401 rather than by the scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload; `enrollment`, when present, is normalized
        to a stripped string

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired or
        lacks the `sub` and `role` claims
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    if not payload.get("sub") or not payload.get("role"):
        raise _unauthorized("Invalid token payload")

    enrollment = payload.get("enrollment")
    if enrollment is not None:
        enrollment = str(enrollment).strip()
        payload["enrollment"] = enrollment or None

    return payload
