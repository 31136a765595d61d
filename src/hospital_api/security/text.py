# src/hospital_api/security/text.py
"""Free-text sanitization and attack-signature detection.

Two separate tools live here and must not be substituted for each other:

- sanitize_string() strips characters and document-query operators so the
  value is safe to hand to the persistence layer.
- encode_html_entities() escapes a value for an HTML display context and
  keeps every character.

Signature detection is a heuristic over THREAT_RULES. It reports what it
finds so callers and tests can see it; parameterized queries remain the
actual injection defense.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 255

# Characters removed by sanitize_string
DENYLIST_PATTERN = re.compile(r"[<>'\";&${}()]")

# Document-query operator tokens, removed case-insensitively
QUERY_OPERATOR_TOKENS = ("$where", "$ne", "$or", "$and", "$regex")
QUERY_OPERATOR_PATTERN = re.compile(
    "|".join(re.escape(token) for token in QUERY_OPERATOR_TOKENS), re.IGNORECASE
)

HTML_ENTITY_MAP = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}
HTML_ENTITY_PATTERN = re.compile(r"[&<>\"'/]")


@dataclass(frozen=True)
class ThreatRule:
    """One detection rule: a compiled pattern and the category it reports."""

    category: str
    pattern: re.Pattern


THREAT_RULES: tuple[ThreatRule, ...] = (
    ThreatRule(
        "Script tag detected",
        re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    ),
    ThreatRule("JavaScript protocol detected", re.compile(r"javascript:", re.IGNORECASE)),
    ThreatRule("VBScript protocol detected", re.compile(r"vbscript:", re.IGNORECASE)),
    ThreatRule("Event handler detected", re.compile(r"on\w+\s*=", re.IGNORECASE)),
    ThreatRule("CSS expression detected", re.compile(r"expression\s*\(", re.IGNORECASE)),
    ThreatRule(
        "SQL keywords detected",
        re.compile(r"\b(?:union|select|insert|delete|drop|update)\b", re.IGNORECASE),
    ),
    ThreatRule("SQL comment detected", re.compile(r"--|#|/\*|\*/")),
    ThreatRule(
        "Command injection pattern detected",
        re.compile(r"\|\||&&|\||&|;|\$\(|`"),
    ),
)


@dataclass
class TextValidationResult:
    """Outcome of validating one text field.

    The sanitized value is always populated, even when errors were found;
    callers decide whether to proceed.
    """

    sanitized: str
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "sanitized": self.sanitized,
            "errors": list(self.errors),
        }


def sanitize_string(value: object) -> str:
    """Strip injection characters and query operators from a string.

    Args:
        value: Raw user input

    Returns:
        The input without ``< > ' " ; & $ { } ( )`` or operator tokens,
        whitespace-trimmed. Non-string or empty input yields "".
    """
    if not value or not isinstance(value, str):
        return ""

    value = DENYLIST_PATTERN.sub("", value)
    value = QUERY_OPERATOR_PATTERN.sub("", value)
    return value.strip()


def detect_threats(value: object, rules: tuple[ThreatRule, ...] = THREAT_RULES) -> list[str]:
    """Return the category of every rule that matches value, in rule order."""
    if not value or not isinstance(value, str):
        return []
    return [rule.category for rule in rules if rule.pattern.search(value)]


def validate_text(
    value: object,
    max_length: int = DEFAULT_MAX_LENGTH,
    rules: tuple[ThreatRule, ...] = THREAT_RULES,
) -> TextValidationResult:
    """Validate and sanitize a free-text field.

    Length violations are reported, never silently truncated. Each detected
    threat category is reported once.

    Args:
        value: Raw user input
        max_length: Maximum allowed length for this field
        rules: Detection rules to apply

    Returns:
        TextValidationResult with the sanitized text and error messages
    """
    if not value or not isinstance(value, str):
        return TextValidationResult(sanitized="", errors=["Input is required"])

    errors: list[str] = []

    if len(value) > max_length:
        errors.append(f"Input must be {max_length} characters or less")

    threats = detect_threats(value, rules)
    if threats:
        logger.warning(f"Security threat detected in input: {', '.join(threats)}")
        errors.append(f"Security threat detected: {', '.join(threats)}")

    return TextValidationResult(sanitized=sanitize_string(value), errors=errors)


def encode_html_entities(value: object) -> str:
    """Escape ``& < > " ' /`` for safe display in HTML."""
    if not value or not isinstance(value, str):
        return ""
    return HTML_ENTITY_PATTERN.sub(lambda m: HTML_ENTITY_MAP[m.group(0)], value)
