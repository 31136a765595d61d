# src/hospital_api/oauth/flow.py
"""OAuth authorization-code + PKCE login flow.

A login moves through these states::

    IDLE -> AWAITING_CALLBACK -> TOKEN_EXCHANGED -> IDENTITY_RESOLVED
         -> SESSION_ESTABLISHED

and any failure moves it to ERROR, which is final. Login start and the
callback arrive as separate HTTP requests; the only state carried between
them is the PKCE verifier held in the client's cookie.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from urllib.parse import quote, urlencode

import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from ..config import AppConfig, OAuthConfig, SecurityConfig
from ..db.models import (
    DEFAULT_STAFF_ROLE,
    OAUTH_PASSWORD_MARKER,
    Staff,
    User,
)
from ..errors import (
    ConfigError,
    MissingPKCEVerifierError,
    OAuthNotConfiguredError,
)
from ..security.urls import validate_url
from ..security.validators import validate_name
from ..version import get_token_claims_version
from .pkce import generate_pkce_pair, generate_state
from .provider import IdentityProvider, UserInfo

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
FRONTEND_CALLBACK_PATH = "/oauth/callback"


class FlowState(str, Enum):
    IDLE = "IDLE"
    AWAITING_CALLBACK = "AWAITING_CALLBACK"
    TOKEN_EXCHANGED = "TOKEN_EXCHANGED"
    IDENTITY_RESOLVED = "IDENTITY_RESOLVED"
    SESSION_ESTABLISHED = "SESSION_ESTABLISHED"
    ERROR = "ERROR"


_TRANSITIONS = {
    FlowState.IDLE: {FlowState.AWAITING_CALLBACK},
    FlowState.AWAITING_CALLBACK: {FlowState.TOKEN_EXCHANGED},
    FlowState.TOKEN_EXCHANGED: {FlowState.IDENTITY_RESOLVED},
    FlowState.IDENTITY_RESOLVED: {FlowState.SESSION_ESTABLISHED},
    FlowState.SESSION_ESTABLISHED: set(),
    FlowState.ERROR: set(),
}


class InvalidTransitionError(RuntimeError):
    """Raised on a state change the login flow does not allow."""


@dataclass(frozen=True)
class LoginRedirect:
    """Result of starting a login: where to send the browser and what to keep."""

    authorization_url: str
    code_verifier: str
    state: str


@dataclass(frozen=True)
class EstablishedSession:
    """Result of a completed callback."""

    token: str
    role: str
    user: User
    staff: Staff
    redirect_url: str
    created_user: bool = False
    created_staff: bool = False


@dataclass
class LoginFlow:
    """Tracks one login attempt through the state machine."""

    state: FlowState = FlowState.IDLE
    history: list[FlowState] = field(default_factory=list)

    def advance(self, new_state: FlowState) -> None:
        if new_state is FlowState.ERROR:
            if self.state is not FlowState.ERROR:
                self.history.append(self.state)
                self.state = FlowState.ERROR
            return
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Cannot move login flow from {self.state.value} to {new_state.value}"
            )
        self.history.append(self.state)
        self.state = new_state

    def fail(self) -> None:
        self.advance(FlowState.ERROR)


def build_authorization_url(config: OAuthConfig, code_challenge: str, state: str) -> str:
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": config.scope,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "state": state,
    }
    return f"{config.authorization_endpoint}?{urlencode(params)}"


def start_login(config: OAuthConfig, flow: LoginFlow | None = None) -> LoginRedirect:
    """Begin a login: create the PKCE pair and the provider redirect.

    Raises:
        OAuthNotConfiguredError: client id or redirect URI missing; the flow
            stays in IDLE.
    """
    if not config.is_configured:
        raise OAuthNotConfiguredError(config.missing_settings())

    flow = flow or LoginFlow()
    pair = generate_pkce_pair()
    state = generate_state()
    url = build_authorization_url(config, pair.code_challenge, state)
    flow.advance(FlowState.AWAITING_CALLBACK)

    return LoginRedirect(authorization_url=url, code_verifier=pair.code_verifier, state=state)


def resolve_identity(db: DBSession, user_info: UserInfo) -> tuple[User, Staff, bool, bool]:
    """Find or create the local User and Staff rows for an external identity.

    Rows are keyed by email, so repeated logins reuse them. New rows are
    flushed but not committed; the caller owns the transaction.

    Returns:
        (user, staff, created_user, created_staff)
    """
    email = user_info.email.strip().lower()

    created_user = False
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(username=email, email=email, password=OAUTH_PASSWORD_MARKER)
        db.add(user)
        created_user = True

    created_staff = False
    staff = db.query(Staff).filter(Staff.email == email).first()
    if staff is None:
        # Provider display names are untrusted; unusable ones fall back to the email
        checked_name = validate_name(user_info.name)
        staff_name = checked_name.sanitized if checked_name.is_valid else email
        staff = Staff(
            name=staff_name,
            email=email,
            password=OAUTH_PASSWORD_MARKER,
            role=DEFAULT_STAFF_ROLE,
        )
        db.add(staff)
        created_staff = True

    db.flush()
    return user, staff, created_user, created_staff


def issue_session_token(
    user: User,
    staff: Staff,
    config: SecurityConfig,
    now: datetime | None = None,
) -> str:
    """Sign a time-boxed session token embedding the user and staff records."""
    now = now or datetime.now(timezone.utc)
    payload = {
        **user.to_dict(),
        "sub": user.id,
        "userId": user.id,
        "staffDetails": staff.to_dict(),
        "role": staff.role,
        "ver": get_token_claims_version(),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=config.session_ttl_hours)).timestamp()),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=ALGORITHM)


def build_frontend_redirect(
    frontend_origin: str,
    allowed_hosts: list[str],
    token: str,
    role: str,
    user_info: dict,
) -> str:
    """Build the frontend callback URL carrying the session in the fragment.

    The fragment is never sent to servers, so the token stays out of
    request logs.

    Raises:
        ConfigError: the frontend origin is not an allowed host.
    """
    origin = validate_url(frontend_origin, allowed_hosts)
    if origin is None:
        raise ConfigError(
            f"Frontend origin '{frontend_origin}' is not in allowed_hosts",
            {"frontend_origin": frontend_origin},
        )

    user_json = json.dumps(user_info, separators=(",", ":"))
    fragment = (
        f"token={quote(token, safe='')}"
        f"&role={quote(role, safe='')}"
        f"&user={quote(user_json, safe='')}"
    )
    return f"{origin.rstrip('/')}{FRONTEND_CALLBACK_PATH}#{fragment}"


async def complete_login(
    code: str | None,
    code_verifier: str | None,
    provider: IdentityProvider,
    db: DBSession,
    config: AppConfig,
    flow: LoginFlow | None = None,
) -> EstablishedSession:
    """Finish a login from the provider's callback.

    Exchanges the code, resolves the local identity and signs a session
    token. The new rows are committed only once the redirect is built. On any failure the transaction is rolled back, the flow
    moves to ERROR and the exception propagates.

    Raises:
        MissingPKCEVerifierError: code or verifier absent (nothing attempted)
        OAuthNotConfiguredError: client id or redirect URI missing
        UpstreamProviderError: token exchange or userinfo failed
        ConfigError: the frontend origin fails the URL guard (nothing persisted)
    """
    flow = flow or LoginFlow(state=FlowState.AWAITING_CALLBACK)

    if not code or not code_verifier:
        flow.fail()
        raise MissingPKCEVerifierError(bool(code), bool(code_verifier))

    if not config.oauth.is_configured:
        flow.fail()
        raise OAuthNotConfiguredError(config.oauth.missing_settings())

    try:
        tokens = await provider.exchange_code(code, code_verifier)
        flow.advance(FlowState.TOKEN_EXCHANGED)

        user_info = await provider.fetch_user_info(tokens.access_token)
        try:
            user, staff, created_user, created_staff = resolve_identity(db, user_info)
        except IntegrityError:
            # A concurrent first login for the same email won the insert
            db.rollback()
            logger.info("Identity created concurrently, reloading by email")
            user, staff, created_user, created_staff = resolve_identity(db, user_info)
        flow.advance(FlowState.IDENTITY_RESOLVED)

        token = issue_session_token(user, staff, config.security)
        redirect_url = build_frontend_redirect(
            config.server.frontend_origin,
            config.security.allowed_hosts,
            token,
            staff.role,
            {"username": user.username, "email": user.email, "role": staff.role},
        )
        # Nothing is persisted until the redirect is known to be valid
        db.commit()
        flow.advance(FlowState.SESSION_ESTABLISHED)
    except Exception:
        db.rollback()
        flow.fail()
        raise

    if created_user or created_staff:
        logger.info(f"Created local records for new OAuth identity (user {user.id})")

    return EstablishedSession(
        token=token,
        role=staff.role,
        user=user,
        staff=staff,
        redirect_url=redirect_url,
        created_user=created_user,
        created_staff=created_staff,
    )
