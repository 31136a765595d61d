# src/hospital_api/api/auth.py
"""Bearer-token authentication for protected routes.

The tokens checked here are the session tokens signed at the end of the
OAuth login (see ``hospital_api.oauth.flow.issue_session_token``).
"""

from __future__ import annotations

from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session as DBSession

from ..db import Staff, User, get_session
from ..db.models import DEFAULT_STAFF_ROLE
from ..oauth.flow import ALGORITHM
from ..version import is_token_claims_compatible
from .deps import ConfigDep


class SessionClaims(BaseModel):
    """The parts of a session token the API relies on."""

    user_id: str
    email: str | None = None
    role: str | None = None
    staff_id: str | None = None
    exp: int | None = None


class CurrentUser(BaseModel):
    """Authenticated user, with the role taken from their staff record."""

    id: str
    username: str
    email: str
    staff_id: str | None = None
    name: str | None = None
    role: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str, secret: str) -> SessionClaims:
    """Verify a session token's signature, expiry and claims version.

    Raises:
        HTTPException: 401 "Token expired", or 401 for any other defect
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise _unauthorized("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise _unauthorized("Could not validate credentials") from e

    user_id = payload.get("userId") or payload.get("sub")
    if not user_id or not is_token_claims_compatible(payload.get("ver", "")):
        raise _unauthorized("Could not validate credentials")

    staff_details = payload.get("staffDetails") or {}
    return SessionClaims(
        user_id=user_id,
        email=payload.get("email"),
        role=payload.get("role"),
        staff_id=staff_details.get("_id"),
        exp=payload.get("exp"),
    )


def get_token_from_header(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Return the token from ``Authorization: Bearer <token>``."""
    if authorization is None:
        raise _unauthorized("Not authenticated")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Invalid authentication scheme")
    return token.strip()


async def get_current_user(
    token: Annotated[str, Depends(get_token_from_header)],
    config: ConfigDep,
    db: Annotated[DBSession, Depends(get_session)],
) -> CurrentUser:
    """Resolve the bearer token to a user.

    The role is read from the staff table on every request rather than
    trusted from the token, so demotions apply immediately.
    """
    claims = decode_token(token, config.security.jwt_secret)

    user = db.get(User, claims.user_id)
    if user is None:
        raise _unauthorized("User not found")

    staff = db.query(Staff).filter(Staff.email == user.email).first()
    return CurrentUser(
        id=user.id,
        username=user.username,
        email=user.email,
        staff_id=staff.id if staff else None,
        name=staff.name if staff else None,
        role=staff.role if staff else DEFAULT_STAFF_ROLE,
    )


def require_role(*roles: str):
    """Dependency factory: 403 unless the user holds one of ``roles``."""

    async def check_role(
        user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return user

    return check_role


AuthenticatedUser = Annotated[CurrentUser, Depends(get_current_user)]
AdminUser = Annotated[CurrentUser, Depends(require_role("ADMIN"))]
