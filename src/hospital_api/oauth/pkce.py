# src/hospital_api/oauth/pkce.py
"""PKCE (Proof Key for Code Exchange) helpers.

Implements the RFC 7636 S256 method: the verifier is 32 random bytes in
base64url form and the challenge is BASE64URL(SHA256(verifier)), both
without padding.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass

CODE_CHALLENGE_METHOD = "S256"
VERIFIER_BYTES = 32
STATE_BYTES = 16


@dataclass(frozen=True)
class PKCEPair:
    """A verifier and the challenge derived from it."""

    code_verifier: str
    code_challenge: str
    code_challenge_method: str = CODE_CHALLENGE_METHOD


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier() -> str:
    """Generate a 43-character high-entropy code verifier."""
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge for a verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return _b64url(digest)


def generate_state() -> str:
    """Generate the anti-replay ``state`` parameter (32 hex characters)."""
    return secrets.token_hex(STATE_BYTES)


def generate_pkce_pair() -> PKCEPair:
    verifier = generate_code_verifier()
    return PKCEPair(
        code_verifier=verifier,
        code_challenge=generate_code_challenge(verifier),
    )
