"""Shared fixtures for hospital_api tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from hospital_api.api.rate_limit import reset_rate_limiter
from hospital_api.config import AppConfig, OAuthConfig, SecurityConfig, ServerConfig
from hospital_api.db.models import Staff, User
from hospital_api.db.session import create_session, init_db, reset_engine
from hospital_api.errors import UpstreamProviderError
from hospital_api.oauth.flow import issue_session_token
from hospital_api.oauth.provider import TokenSet, UserInfo

TEST_SECRET = "test-signing-secret"


class FakeIdentityProvider:
    """In-process identity provider for the OAuth flow."""

    def __init__(
        self,
        email: str = "jane.doe@example.com",
        name: str | None = "Jane Doe",
        fail_exchange: bool = False,
        fail_userinfo: bool = False,
    ):
        self.email = email
        self.name = name
        self.fail_exchange = fail_exchange
        self.fail_userinfo = fail_userinfo
        self.exchanges: list[tuple[str, str]] = []
        self.userinfo_tokens: list[str] = []

    async def exchange_code(self, code: str, code_verifier: str) -> TokenSet:
        self.exchanges.append((code, code_verifier))
        if self.fail_exchange:
            raise UpstreamProviderError("token exchange", "invalid_grant", 400)
        return TokenSet(access_token=f"access-{code}", token_type="Bearer", expires_in=3600)

    async def fetch_user_info(self, access_token: str) -> UserInfo:
        self.userinfo_tokens.append(access_token)
        if self.fail_userinfo:
            raise UpstreamProviderError("userinfo", "HTTP 503", 503)
        return UserInfo(email=self.email, name=self.name)


@pytest.fixture(autouse=True)
def _reset_globals():
    """Reset the global engine and rate limiter between tests."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()
    reset_engine()


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        oauth=OAuthConfig(
            client_id="test-client",
            client_secret="test-client-secret",
            redirect_uri="http://localhost:3000/api/v1/auth/oauth/callback",
            authorization_endpoint="https://idp.example.com/authorize",
            token_endpoint="https://idp.example.com/token",
            userinfo_endpoint="https://idp.example.com/userinfo",
        ),
        security=SecurityConfig(jwt_secret=TEST_SECRET),
        server=ServerConfig(
            frontend_origin="http://localhost:5173",
            environment="test",
            database_url=f"sqlite:///{tmp_path / 'hospital.db'}",
        ),
    )


@pytest.fixture
def fake_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def client(app_config, fake_provider):
    """Test client with lifespan (database initialized in tmp_path)."""
    from hospital_api.api.app import create_app

    app = create_app(app_config, identity_provider=fake_provider)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session(tmp_path):
    init_db(tmp_path / "unit.db")
    session = create_session()
    yield session
    session.close()


def add_staff(
    session,
    email: str = "dr.house@example.com",
    name: str = "Gregory House",
    role: str = "DOCTOR",
) -> Staff:
    staff = Staff(name=name, email=email, password="hashed", role=role)
    session.add(staff)
    session.commit()
    return staff


def add_user(session, email: str, username: str | None = None) -> User:
    user = User(username=username or email, email=email, password="hashed")
    session.add(user)
    session.commit()
    return user


def bearer_for(session, email: str, role: str = "ADMIN", secret: str = TEST_SECRET) -> dict:
    """Create a user + staff pair and return an Authorization header for them."""
    user = add_user(session, email)
    staff = add_staff(session, email=email, name=email.split("@")[0], role=role)
    token = issue_session_token(user, staff, SecurityConfig(jwt_secret=secret))
    return {"Authorization": f"Bearer {token}"}
