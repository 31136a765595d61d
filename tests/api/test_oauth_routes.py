"""OAuth login/callback routes end to end with a fake identity provider."""

from __future__ import annotations

import json
from urllib.parse import parse_qs, urlsplit

from hospital_api.db.models import Staff, User
from hospital_api.db.session import create_session
from hospital_api.oauth.pkce import generate_code_challenge

LOGIN = "/api/v1/auth/oauth/login"
CALLBACK = "/api/v1/auth/oauth/callback"


def _login(client):
    response = client.get(LOGIN, follow_redirects=False)
    assert response.status_code == 302, response.text
    return response


def _callback(client, code="auth-code"):
    return client.get(CALLBACK, params={"code": code}, follow_redirects=False)


def _fragment(location: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(location).fragment).items()}


def _counts() -> tuple[int, int]:
    session = create_session()
    try:
        return session.query(User).count(), session.query(Staff).count()
    finally:
        session.close()


def test_login_redirects_to_provider_with_pkce(client):
    response = _login(client)

    location = response.headers["location"]
    assert location.startswith("https://idp.example.com/authorize?")
    params = {k: v[0] for k, v in parse_qs(urlsplit(location).query).items()}

    verifier = client.cookies.get("pkce_verifier")
    assert verifier
    assert params["code_challenge"] == generate_code_challenge(verifier)
    assert params["code_challenge_method"] == "S256"
    assert verifier not in location


def test_login_sets_httponly_short_lived_cookie(client):
    cookie_header = _login(client).headers["set-cookie"]

    assert cookie_header.startswith("pkce_verifier=")
    assert "HttpOnly" in cookie_header
    assert "Max-Age=600" in cookie_header
    assert "samesite=lax" in cookie_header.lower()
    assert "Secure" not in cookie_header


def test_login_not_configured_returns_500(client, app_config):
    app_config.oauth.client_id = None

    response = client.get(LOGIN, follow_redirects=False)

    assert response.status_code == 500
    assert response.json() == {"message": "OAuth not configured"}


def test_callback_without_verifier_cookie_returns_400(client, fake_provider):
    response = _callback(client)

    assert response.status_code == 400
    assert response.json() == {"message": "Missing authorization code or PKCE verifier"}
    assert fake_provider.exchanges == []


def test_callback_without_code_returns_400(client):
    _login(client)

    response = client.get(CALLBACK, params={"error": "access_denied"}, follow_redirects=False)

    assert response.status_code == 400
    assert response.json()["message"] == "Missing authorization code or PKCE verifier"


def test_callback_success_redirects_with_session_fragment(client, fake_provider):
    _login(client)
    verifier = client.cookies.get("pkce_verifier")

    response = _callback(client, code="abc")

    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("http://localhost:5173/oauth/callback#")
    assert "token=" not in urlsplit(location).query

    fragment = _fragment(location)
    assert fragment["role"] == "PATIENT"
    assert json.loads(fragment["user"]) == {
        "username": "jane.doe@example.com",
        "email": "jane.doe@example.com",
        "role": "PATIENT",
    }
    assert fake_provider.exchanges == [("abc", verifier)]


def test_callback_clears_verifier_cookie(client):
    _login(client)

    response = _callback(client)

    assert response.status_code == 302
    assert 'pkce_verifier=""' in response.headers["set-cookie"]
    assert "Max-Age=0" in response.headers["set-cookie"]


def test_first_login_creates_one_user_and_staff_then_reuses(client):
    _login(client)
    assert _callback(client, code="first").status_code == 302
    assert _counts() == (1, 1)

    _login(client)
    assert _callback(client, code="second").status_code == 302
    assert _counts() == (1, 1)


def test_session_token_authenticates_me(client):
    _login(client)
    token = _fragment(_callback(client).headers["location"])["token"]

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "jane.doe@example.com"
    assert body["role"] == "PATIENT"
    assert body["name"] == "Jane Doe"


def test_callback_provider_failure_returns_500(client, fake_provider):
    fake_provider.fail_exchange = True
    _login(client)

    response = _callback(client)

    assert response.status_code == 500
    assert response.json() == {
        "message": "OAuth callback failed",
        "error": "Identity provider token exchange failed: invalid_grant",
    }
    assert _counts() == (0, 0)


def test_callback_not_configured_returns_500(client, app_config):
    _login(client)
    app_config.oauth.redirect_uri = None

    response = _callback(client)

    assert response.status_code == 500
    assert response.json() == {"message": "OAuth not configured"}


def test_login_is_rate_limited(client):
    for _ in range(20):
        assert client.get(LOGIN, follow_redirects=False).status_code == 302

    response = client.get(LOGIN, follow_redirects=False)

    assert response.status_code == 429
    assert "Retry-After" in response.headers
    assert response.headers["X-RateLimit-Limit"] == "20"
