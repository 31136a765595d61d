# src/hospital_api/security/identifiers.py
"""Resource identifier sanitization (NoSQL injection defense for ids)."""

from __future__ import annotations

import re

from ..db.models import is_valid_object_id

NON_HEX_PATTERN = re.compile(r"[^0-9a-fA-F]")

OBJECT_ID_LENGTH = 24


def sanitize_object_id(value: object) -> str | None:
    """Reduce a raw identifier to a canonical 24-hex object id.

    Every character outside [0-9a-fA-F] is removed. The result is returned
    only if exactly 24 characters remain and the persistence layer accepts
    the format; otherwise None. Never raises.

    Args:
        value: Raw identifier, usually a path parameter or body field

    Returns:
        24-character hex string, or None if the input cannot be an id
    """
    if not value or not isinstance(value, str):
        return None

    sanitized = NON_HEX_PATTERN.sub("", value)

    if len(sanitized) != OBJECT_ID_LENGTH or not is_valid_object_id(sanitized):
        return None

    return sanitized
