# tests/oauth/test_login_flow.py
import asyncio
import json
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, unquote, urlsplit

import jwt
import pytest

from conftest import TEST_SECRET, FakeIdentityProvider, add_staff
from hospital_api.config import OAuthConfig, SecurityConfig
from hospital_api.db.models import OAUTH_PASSWORD_MARKER, Staff, User
from hospital_api.errors import (
    ConfigError,
    MissingPKCEVerifierError,
    OAuthNotConfiguredError,
    UpstreamProviderError,
)
from hospital_api.oauth.flow import (
    ALGORITHM,
    FlowState,
    InvalidTransitionError,
    LoginFlow,
    build_frontend_redirect,
    complete_login,
    issue_session_token,
    resolve_identity,
    start_login,
)
from hospital_api.oauth.pkce import generate_code_challenge
from hospital_api.oauth.provider import UserInfo


def _fragment(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).fragment).items()}


# --- state machine ---------------------------------------------------------


def test_flow_happy_path_transitions():
    flow = LoginFlow()
    for state in (
        FlowState.AWAITING_CALLBACK,
        FlowState.TOKEN_EXCHANGED,
        FlowState.IDENTITY_RESOLVED,
        FlowState.SESSION_ESTABLISHED,
    ):
        flow.advance(state)

    assert flow.state is FlowState.SESSION_ESTABLISHED
    assert flow.history[0] is FlowState.IDLE


def test_flow_rejects_skipped_state():
    flow = LoginFlow()
    with pytest.raises(InvalidTransitionError):
        flow.advance(FlowState.TOKEN_EXCHANGED)
    assert flow.state is FlowState.IDLE


@pytest.mark.parametrize("start", list(FlowState))
def test_error_reachable_from_every_state(start):
    flow = LoginFlow(state=start)
    flow.fail()
    assert flow.state is FlowState.ERROR


def test_error_is_absorbing():
    flow = LoginFlow(state=FlowState.ERROR)
    flow.fail()
    assert flow.history == []
    with pytest.raises(InvalidTransitionError):
        flow.advance(FlowState.AWAITING_CALLBACK)


# --- start_login -----------------------------------------------------------


def test_start_login_builds_pkce_authorization_url(app_config):
    flow = LoginFlow()
    login = start_login(app_config.oauth, flow)

    parts = urlsplit(login.authorization_url)
    params = {k: v[0] for k, v in parse_qs(parts.query).items()}

    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://idp.example.com/authorize"
    assert params["client_id"] == "test-client"
    assert params["response_type"] == "code"
    assert params["scope"] == "openid profile email"
    assert params["code_challenge_method"] == "S256"
    assert params["code_challenge"] == generate_code_challenge(login.code_verifier)
    assert params["state"] == login.state
    assert "code_verifier" not in params
    assert flow.state is FlowState.AWAITING_CALLBACK


def test_start_login_not_configured_stays_idle():
    flow = LoginFlow()
    with pytest.raises(OAuthNotConfiguredError) as exc_info:
        start_login(OAuthConfig(), flow)

    assert exc_info.value.details["missing"] == ["client_id", "redirect_uri"]
    assert flow.state is FlowState.IDLE


# --- identity resolution ---------------------------------------------------


def test_resolve_identity_creates_then_reuses(db_session):
    info = UserInfo(email="New.Person@Example.com", name="New Person")

    user, staff, created_user, created_staff = resolve_identity(db_session, info)
    db_session.commit()

    assert created_user and created_staff
    assert user.email == "new.person@example.com"
    assert user.username == "new.person@example.com"
    assert user.password == OAUTH_PASSWORD_MARKER
    assert staff.name == "New Person"
    assert staff.role == "PATIENT"

    again = resolve_identity(db_session, UserInfo(email="new.person@example.com"))
    db_session.commit()

    assert again[0].id == user.id
    assert again[1].id == staff.id
    assert again[2:] == (False, False)
    assert db_session.query(User).count() == 1
    assert db_session.query(Staff).count() == 1


def test_resolve_identity_keeps_existing_staff_role(db_session):
    add_staff(db_session, email="doc@example.com", name="Doc", role="DOCTOR")

    _, staff, created_user, created_staff = resolve_identity(
        db_session, UserInfo(email="doc@example.com", name="Someone Else")
    )

    assert created_user is True
    assert created_staff is False
    assert staff.role == "DOCTOR"
    assert staff.name == "Doc"


def test_resolve_identity_falls_back_to_email_for_name(db_session):
    _, staff, _, _ = resolve_identity(db_session, UserInfo(email="anon@example.com"))
    assert staff.name == "anon@example.com"


# --- token and redirect ----------------------------------------------------


def test_issue_session_token_claims(db_session):
    user, staff, _, _ = resolve_identity(db_session, UserInfo(email="a@example.com"))
    db_session.commit()
    now = datetime.now(timezone.utc) - timedelta(minutes=1)

    token = issue_session_token(
        user, staff, SecurityConfig(jwt_secret=TEST_SECRET, session_ttl_hours=2), now=now
    )
    claims = jwt.decode(token, TEST_SECRET, algorithms=[ALGORITHM])

    assert claims["sub"] == user.id
    assert claims["userId"] == user.id
    assert claims["email"] == "a@example.com"
    assert claims["role"] == "PATIENT"
    assert claims["staffDetails"]["_id"] == staff.id
    assert claims["ver"] == "1.0"
    assert claims["exp"] - claims["iat"] == int(timedelta(hours=2).total_seconds())
    assert "password" not in claims
    assert "password" not in claims["staffDetails"]


def test_frontend_redirect_puts_session_in_fragment():
    url = build_frontend_redirect(
        "http://localhost:5173",
        ["localhost"],
        "tok.en.value",
        "PATIENT",
        {"username": "a@example.com", "email": "a@example.com", "role": "PATIENT"},
    )

    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "http://localhost:5173/oauth/callback"
    assert parts.query == ""

    fragment = _fragment(url)
    assert fragment["token"] == "tok.en.value"
    assert fragment["role"] == "PATIENT"
    assert json.loads(fragment["user"])["email"] == "a@example.com"


def test_frontend_redirect_rejects_unlisted_origin():
    with pytest.raises(ConfigError, match="not in allowed_hosts"):
        build_frontend_redirect("https://evil.example.net", ["localhost"], "t", "PATIENT", {})


# --- complete_login ---------------------------------------------------------


def test_complete_login_success(db_session, app_config):
    provider = FakeIdentityProvider(email="Jane.Doe@Example.com")
    flow = LoginFlow(state=FlowState.AWAITING_CALLBACK)

    session = asyncio.run(
        complete_login("auth-code", "verifier", provider, db_session, app_config, flow)
    )

    assert provider.exchanges == [("auth-code", "verifier")]
    assert provider.userinfo_tokens == ["access-auth-code"]
    assert flow.state is FlowState.SESSION_ESTABLISHED
    assert session.created_user and session.created_staff
    assert session.role == "PATIENT"
    assert unquote(_fragment(session.redirect_url)["token"]) == session.token

    claims = jwt.decode(session.token, TEST_SECRET, algorithms=[ALGORITHM])
    assert claims["email"] == "jane.doe@example.com"


def test_complete_login_twice_reuses_records(db_session, app_config):
    provider = FakeIdentityProvider()

    first = asyncio.run(complete_login("c1", "v1", provider, db_session, app_config))
    second = asyncio.run(complete_login("c2", "v2", provider, db_session, app_config))

    assert second.user.id == first.user.id
    assert second.staff.id == first.staff.id
    assert not second.created_user and not second.created_staff
    assert db_session.query(User).count() == 1
    assert db_session.query(Staff).count() == 1


@pytest.mark.parametrize("code,verifier", [(None, "v"), ("c", None), ("", "")])
def test_complete_login_missing_code_or_verifier(db_session, app_config, code, verifier):
    provider = FakeIdentityProvider()
    flow = LoginFlow(state=FlowState.AWAITING_CALLBACK)

    with pytest.raises(MissingPKCEVerifierError):
        asyncio.run(complete_login(code, verifier, provider, db_session, app_config, flow))

    assert provider.exchanges == []
    assert flow.state is FlowState.ERROR


def test_complete_login_not_configured(db_session, app_config):
    app_config.oauth.client_id = None
    provider = FakeIdentityProvider()

    with pytest.raises(OAuthNotConfiguredError):
        asyncio.run(complete_login("c", "v", provider, db_session, app_config))

    assert provider.exchanges == []


def test_complete_login_exchange_failure_creates_nothing(db_session, app_config):
    provider = FakeIdentityProvider(fail_exchange=True)
    flow = LoginFlow(state=FlowState.AWAITING_CALLBACK)

    with pytest.raises(UpstreamProviderError):
        asyncio.run(complete_login("c", "v", provider, db_session, app_config, flow))

    assert flow.state is FlowState.ERROR
    assert flow.history[-1] is FlowState.AWAITING_CALLBACK
    assert db_session.query(User).count() == 0


def test_complete_login_userinfo_failure_stops_after_exchange(db_session, app_config):
    provider = FakeIdentityProvider(fail_userinfo=True)
    flow = LoginFlow(state=FlowState.AWAITING_CALLBACK)

    with pytest.raises(UpstreamProviderError):
        asyncio.run(complete_login("c", "v", provider, db_session, app_config, flow))

    assert flow.history[-1] is FlowState.TOKEN_EXCHANGED
    assert db_session.query(Staff).count() == 0


def test_complete_login_unlisted_frontend_persists_nothing(db_session, app_config):
    app_config.server.frontend_origin = "https://app.hospital.org"
    provider = FakeIdentityProvider()
    flow = LoginFlow(state=FlowState.AWAITING_CALLBACK)

    with pytest.raises(ConfigError, match="not in allowed_hosts"):
        asyncio.run(complete_login("c", "v", provider, db_session, app_config, flow))

    assert flow.state is FlowState.ERROR
    assert flow.history[-1] is FlowState.IDENTITY_RESOLVED
    assert db_session.query(User).count() == 0
    assert db_session.query(Staff).count() == 0


@pytest.mark.parametrize("name", ["<script>alert(1)</script>", "R2-D2", "  "])
def test_resolve_identity_rejects_unsafe_display_name(db_session, name):
    _, staff, _, _ = resolve_identity(
        db_session, UserInfo(email="odd@example.com", name=name)
    )
    assert staff.name == "odd@example.com"


def test_resolve_identity_trims_display_name(db_session):
    _, staff, _, _ = resolve_identity(
        db_session, UserInfo(email="trim@example.com", name="  Ada Lovelace ")
    )
    assert staff.name == "Ada Lovelace"
