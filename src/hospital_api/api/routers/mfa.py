# src/hospital_api/api/routers/mfa.py
"""Two-factor (TOTP) enrollment endpoints for signed-in users."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session as DBSession

from ... import mfa
from ...db import User, get_session
from ...errors import ResourceNotFoundError
from ..auth import AuthenticatedUser
from ..deps import ConfigDep
from ..rate_limit import require_rate_limit

router = APIRouter(
    prefix="/api/v1/auth/mfa",
    tags=["auth"],
    dependencies=[Depends(require_rate_limit("mfa"))],
)


class MfaVerifyPayload(BaseModel):
    token: str = Field(pattern=r"^\d{6}$")


def _load_user(db: DBSession, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise ResourceNotFoundError("user", user_id)
    return user


@router.post("/setup")
async def setup_mfa(
    current: AuthenticatedUser,
    config: ConfigDep,
    db: Annotated[DBSession, Depends(get_session)],
) -> dict[str, Any]:
    """Start enrollment; returns the otpauth:// URI for the authenticator app."""
    user = _load_user(db, current.id)
    setup = mfa.begin_setup(db, user, config.security.mfa_issuer)
    return {"otpauth": setup.otpauth_url}


@router.post("/verify")
async def verify_mfa(
    payload: MfaVerifyPayload,
    current: AuthenticatedUser,
    db: Annotated[DBSession, Depends(get_session)],
) -> dict[str, Any]:
    """Confirm the pending secret with a current code and enable 2FA."""
    mfa.confirm_setup(db, _load_user(db, current.id), payload.token)
    return {"message": "2FA enabled"}


@router.post("/disable")
async def disable_mfa(
    current: AuthenticatedUser,
    db: Annotated[DBSession, Depends(get_session)],
) -> dict[str, Any]:
    mfa.disable(db, _load_user(db, current.id))
    return {"message": "2FA disabled"}
