# src/hospital_api/security/__init__.py
"""Input and request guards: identifiers, free text and outbound URLs."""

from .identifiers import sanitize_object_id
from .text import (
    THREAT_RULES,
    TextValidationResult,
    ThreatRule,
    detect_threats,
    encode_html_entities,
    sanitize_string,
    validate_text,
)
from .urls import is_host_allowed, is_private_host, validate_url
from .validators import (
    INPUT_LIMITS,
    validate_date,
    validate_email,
    validate_medical_text,
    validate_name,
    validate_numeric,
    validate_password,
    validate_phone,
)

__all__ = [
    "sanitize_object_id",
    "sanitize_string",
    "validate_text",
    "detect_threats",
    "encode_html_entities",
    "TextValidationResult",
    "ThreatRule",
    "THREAT_RULES",
    "validate_url",
    "is_host_allowed",
    "is_private_host",
    "INPUT_LIMITS",
    "validate_email",
    "validate_name",
    "validate_password",
    "validate_phone",
    "validate_numeric",
    "validate_medical_text",
    "validate_date",
]
