# src/hospital_api/api/routers/oauth.py
"""OAuth login endpoints.

``/oauth/login`` starts an authorization-code + PKCE login and
``/oauth/callback`` finishes it. The PKCE verifier travels between the two
only in an HTTP-only cookie.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session as DBSession

from ...db import get_session
from ...errors import MissingPKCEVerifierError, OAuthNotConfiguredError
from ...oauth.flow import complete_login, start_login
from ..auth import AuthenticatedUser, CurrentUser
from ..deps import ConfigDep, ProviderDep
from ..rate_limit import require_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

PKCE_COOKIE_NAME = "pkce_verifier"
PKCE_COOKIE_MAX_AGE = 10 * 60  # seconds


@router.get(
    "/oauth/login",
    dependencies=[Depends(require_rate_limit("oauth"))],
)
async def oauth_login(config: ConfigDep) -> RedirectResponse:
    """Redirect the browser to the identity provider."""
    login = start_login(config.oauth)

    response = RedirectResponse(login.authorization_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        PKCE_COOKIE_NAME,
        login.code_verifier,
        max_age=PKCE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=config.is_production,
    )
    return response


@router.get(
    "/oauth/callback",
    dependencies=[Depends(require_rate_limit("oauth"))],
)
async def oauth_callback(
    config: ConfigDep,
    provider: ProviderDep,
    db: Annotated[DBSession, Depends(get_session)],
    code: str | None = None,
    error: str | None = None,
    pkce_verifier: Annotated[str | None, Cookie()] = None,
):
    """Exchange the authorization code and hand the session to the frontend.

    The token, role and user summary go in the URL fragment of the frontend
    redirect, never in the query string.
    """
    if error:
        logger.warning(f"Identity provider returned error on callback: {error}")

    try:
        session = await complete_login(code, pkce_verifier, provider, db, config)
    except (MissingPKCEVerifierError, OAuthNotConfiguredError):
        raise
    except Exception as e:
        logger.exception("OAuth callback failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "OAuth callback failed", "error": str(e)},
        )

    response = RedirectResponse(session.redirect_url, status_code=status.HTTP_302_FOUND)
    response.delete_cookie(
        PKCE_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=config.is_production,
    )
    return response


@router.get("/me", response_model=CurrentUser)
async def get_me(user: AuthenticatedUser) -> CurrentUser:
    """Return the user behind the session token."""
    return user
