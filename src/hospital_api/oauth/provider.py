# src/hospital_api/oauth/provider.py
"""Identity provider client.

The login flow only needs two provider operations, captured by the
IdentityProvider protocol. HttpIdentityProvider implements them against a
standard OAuth 2.0 / OIDC token and userinfo endpoint with httpx; tests
supply their own implementation.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from ..config import OAuthConfig
from ..errors import UpstreamProviderError

logger = logging.getLogger(__name__)


class TokenSet(BaseModel):
    """Successful token endpoint response (RFC 6749 Section 5.1)."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    id_token: str | None = None
    scope: str | None = None


class UserInfo(BaseModel):
    """Identity claims returned by the userinfo endpoint."""

    model_config = ConfigDict(extra="ignore")

    email: str
    name: str | None = None
    picture: str | None = None
    verified_email: bool | None = None


@runtime_checkable
class IdentityProvider(Protocol):
    async def exchange_code(self, code: str, code_verifier: str) -> TokenSet:
        """Exchange an authorization code plus PKCE verifier for tokens."""
        ...

    async def fetch_user_info(self, access_token: str) -> UserInfo:
        """Fetch the authenticated user's identity claims."""
        ...


def _error_reason(response: httpx.Response) -> str:
    """Best-effort extraction of an OAuth error from a failed response."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict) and "error" in data:
        description = data.get("error_description")
        if description:
            return f"{data['error']} ({description})"
        return str(data["error"])
    return f"HTTP {response.status_code}"


class HttpIdentityProvider:
    """OAuth 2.0 authorization-code + PKCE client for a remote provider.

    Every request is bounded by ``config.timeout_seconds``; a timeout or
    connection error surfaces as UpstreamProviderError. Nothing is retried.
    """

    def __init__(self, config: OAuthConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._http_client = client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        # Without an injected client, each call gets its own short-lived one
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            yield client

    async def exchange_code(self, code: str, code_verifier: str) -> TokenSet:
        logger.debug(f"Exchanging authorization code at {self.config.token_endpoint}")

        form_data = {
            "client_id": self.config.client_id or "",
            "client_secret": self.config.client_secret or "",
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.config.redirect_uri or "",
            "code_verifier": code_verifier,
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    self.config.token_endpoint,
                    data=form_data,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise UpstreamProviderError("token exchange", str(e) or type(e).__name__) from e

        if response.status_code != 200:
            reason = _error_reason(response)
            logger.warning(
                f"Token exchange failed with {response.status_code}: {reason}"
            )
            raise UpstreamProviderError("token exchange", reason, response.status_code)

        try:
            return TokenSet.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamProviderError(
                "token exchange", f"Invalid token response format: {e}"
            ) from e

    async def fetch_user_info(self, access_token: str) -> UserInfo:
        try:
            async with self._client() as client:
                response = await client.get(
                    self.config.userinfo_endpoint,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            raise UpstreamProviderError("userinfo", str(e) or type(e).__name__) from e

        if response.status_code != 200:
            raise UpstreamProviderError(
                "userinfo", _error_reason(response), response.status_code
            )

        try:
            return UserInfo.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamProviderError(
                "userinfo", f"Invalid userinfo response format: {e}"
            ) from e
