# src/hospital_api/mfa.py
"""Time-based one-time password (TOTP) second factor.

Setup stores a pending secret with 2FA still disabled; a correct code from
the authenticator app then enables it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pyotp
from sqlalchemy.orm import Session as DBSession

from .db.models import User
from .errors import MfaError

logger = logging.getLogger(__name__)

# Accept the previous and next 30-second step to absorb clock drift
VALID_WINDOW = 1


@dataclass
class MfaSetup:
    secret: str
    otpauth_url: str


def provisioning_uri(secret: str, email: str, issuer: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=issuer)


def verify_code(secret: str, code: str) -> bool:
    """Check a TOTP code against secret, allowing one step of drift."""
    return pyotp.TOTP(secret).verify(code.strip(), valid_window=VALID_WINDOW)


def begin_setup(db: DBSession, user: User, issuer: str) -> MfaSetup:
    """Generate and store a fresh pending secret for user.

    Any previously enabled second factor is switched off until the new
    secret is confirmed.
    """
    secret = pyotp.random_base32()
    user.two_fa_secret = secret
    user.two_fa_enabled = False
    db.commit()

    logger.info(f"2FA setup started for user {user.id}")
    return MfaSetup(secret=secret, otpauth_url=provisioning_uri(secret, user.email, issuer))


def confirm_setup(db: DBSession, user: User, code: str) -> None:
    """Enable 2FA once the user proves they hold the pending secret.

    Raises:
        MfaError: no pending setup, or the code does not match
    """
    if not user.two_fa_secret:
        raise MfaError("No pending 2FA setup")
    if not verify_code(user.two_fa_secret, code):
        logger.warning(f"Rejected 2FA code for user {user.id}")
        raise MfaError("Invalid token")

    user.two_fa_enabled = True
    db.commit()
    logger.info(f"2FA enabled for user {user.id}")


def disable(db: DBSession, user: User) -> None:
    user.two_fa_enabled = False
    user.two_fa_secret = None
    db.commit()
    logger.info(f"2FA disabled for user {user.id}")
