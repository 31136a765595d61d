# src/hospital_api/oauth/__init__.py
"""OAuth 2.0 authorization-code login with PKCE."""

from .flow import (
    EstablishedSession,
    FlowState,
    LoginFlow,
    LoginRedirect,
    complete_login,
    issue_session_token,
    resolve_identity,
    start_login,
)
from .pkce import PKCEPair, generate_code_challenge, generate_pkce_pair
from .provider import HttpIdentityProvider, IdentityProvider, TokenSet, UserInfo

__all__ = [
    "FlowState",
    "LoginFlow",
    "LoginRedirect",
    "EstablishedSession",
    "start_login",
    "complete_login",
    "resolve_identity",
    "issue_session_token",
    "PKCEPair",
    "generate_pkce_pair",
    "generate_code_challenge",
    "IdentityProvider",
    "HttpIdentityProvider",
    "TokenSet",
    "UserInfo",
]
