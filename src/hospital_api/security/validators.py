# src/hospital_api/security/validators.py
"""Field-level validators built on the text sanitizer.

Each validator returns a TextValidationResult so callers can show every
problem with a field at once.
"""

from __future__ import annotations

import re
from datetime import date

from .text import TextValidationResult, detect_threats, sanitize_string

INPUT_LIMITS = {
    "NAME": 100,
    "EMAIL": 254,
    "PASSWORD": 128,
    "PHONE": 20,
    "ADDRESS": 500,
    "DESCRIPTION": 1000,
    "MEDICAL_NOTES": 2000,
    "GENERAL_TEXT": 255,
    "NUMERIC_STRING": 50,
    "ID_FIELD": 100,
}

PASSWORD_MIN_LENGTH = 8

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
NAME_PATTERN = re.compile(r"[a-zA-Z\s\-'.]+")
MEDICAL_TEXT_PATTERN = re.compile(r"[a-zA-Z0-9\s.,!?\-()\[\]+*/%:;]+")
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
PASSWORD_SPECIAL_PATTERN = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

# Sri Lankan landline and mobile numbers, with optional 0 / 94 / +94 prefix
PHONE_PATTERN = re.compile(
    r"(?:0|94|\+94)?(?:(11|21|23|24|25|26|27|31|32|33|34|35|36|37|38|41|45|47|51"
    r"|52|54|55|57|63|65|66|67|81|912)(0|2|3|4|5|7|9)|7(0|1|2|5|6|7|8)\d)\d{6}"
)


def _required(value: object, label: str) -> TextValidationResult | None:
    if not value or not isinstance(value, str):
        return TextValidationResult(sanitized="", errors=[f"{label} is required"])
    return None


def _threat_errors(value: str) -> list[str]:
    threats = detect_threats(value)
    if threats:
        return [f"Security threat detected: {', '.join(threats)}"]
    return []


def validate_email(email: object) -> TextValidationResult:
    """Validate an email address."""
    missing = _required(email, "Email")
    if missing:
        return missing

    errors = []
    if len(email) > INPUT_LIMITS["EMAIL"]:
        errors.append(f"Email must be {INPUT_LIMITS['EMAIL']} characters or less")

    sanitized = email.strip()
    if not EMAIL_PATTERN.fullmatch(sanitized):
        errors.append("Invalid email format")

    errors.extend(_threat_errors(sanitized))
    return TextValidationResult(sanitized=sanitized, errors=errors)


def validate_name(name: object) -> TextValidationResult:
    """Validate a person name (letters, spaces, hyphens, apostrophes, dots)."""
    missing = _required(name, "Name")
    if missing:
        return missing

    errors = []
    if len(name) > INPUT_LIMITS["NAME"]:
        errors.append(f"Name must be {INPUT_LIMITS['NAME']} characters or less")

    sanitized = name.strip()
    if not NAME_PATTERN.fullmatch(sanitized):
        errors.append("Name can only contain letters, spaces, hyphens, and apostrophes")

    errors.extend(_threat_errors(sanitized))
    return TextValidationResult(sanitized=sanitized, errors=errors)


def validate_password(password: object) -> TextValidationResult:
    """Check password strength.

    The password itself is never sanitized; ``sanitized`` is always "".
    """
    missing = _required(password, "Password")
    if missing:
        return missing

    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if len(password) > INPUT_LIMITS["PASSWORD"]:
        errors.append(
            f"Password must be {INPUT_LIMITS['PASSWORD']} characters or less"
        )
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not PASSWORD_SPECIAL_PATTERN.search(password):
        errors.append("Password must contain at least one special character")

    errors.extend(_threat_errors(password))
    return TextValidationResult(sanitized="", errors=errors)


def validate_phone(phone: object) -> TextValidationResult:
    """Validate a Sri Lankan phone number."""
    missing = _required(phone, "Phone number")
    if missing:
        return missing

    errors = []
    if len(phone) > INPUT_LIMITS["PHONE"]:
        errors.append(
            f"Phone number must be {INPUT_LIMITS['PHONE']} characters or less"
        )

    sanitized = phone.strip()
    if not PHONE_PATTERN.fullmatch(sanitized):
        errors.append("Invalid Sri Lankan phone number format")

    errors.extend(_threat_errors(sanitized))
    return TextValidationResult(sanitized=sanitized, errors=errors)


def validate_numeric(
    value: object,
    min_value: float | None = None,
    max_value: float | None = None,
) -> TextValidationResult:
    """Validate a numeric string, optionally within [min_value, max_value]."""
    missing = _required(value, "Value")
    if missing:
        return missing

    errors = []
    sanitized = value.strip()
    try:
        number = float(sanitized)
    except ValueError:
        errors.append("Value must be a valid number")
    else:
        if number != number:  # NaN
            errors.append("Value must be a valid number")
        elif min_value is not None and number < min_value:
            errors.append(f"Value must be at least {min_value}")
        elif max_value is not None and number > max_value:
            errors.append(f"Value must be at most {max_value}")

    errors.extend(_threat_errors(sanitized))
    return TextValidationResult(sanitized=sanitized, errors=errors)


def validate_medical_text(text: object) -> TextValidationResult:
    """Validate symptoms, diagnosis notes and similar clinical text.

    Clinical notes legitimately use ``( ) ; / %`` so the character check
    is wider than for names, but the stored value is still sanitized.
    """
    missing = _required(text, "Medical text")
    if missing:
        return missing

    errors = []
    if len(text) > INPUT_LIMITS["MEDICAL_NOTES"]:
        errors.append(
            f"Text must be {INPUT_LIMITS['MEDICAL_NOTES']} characters or less"
        )

    stripped = text.strip()
    if not MEDICAL_TEXT_PATTERN.fullmatch(stripped):
        errors.append("Text contains invalid characters for medical data")

    errors.extend(_threat_errors(stripped))
    return TextValidationResult(sanitized=sanitize_string(stripped), errors=errors)


def validate_date(value: object) -> TextValidationResult:
    """Validate a YYYY-MM-DD calendar date."""
    missing = _required(value, "Date")
    if missing:
        return missing

    errors = []
    sanitized = value.strip()
    if not DATE_PATTERN.fullmatch(sanitized):
        errors.append("Date must be in YYYY-MM-DD format")
    else:
        try:
            date.fromisoformat(sanitized)
        except ValueError:
            errors.append("Invalid date")

    errors.extend(_threat_errors(sanitized))
    return TextValidationResult(sanitized=sanitized, errors=errors)
