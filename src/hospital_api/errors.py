"""Custom exceptions for hospital_api with structured error information."""

from __future__ import annotations


class HospitalAPIError(Exception):
    """Base exception for all hospital_api errors.

    Carries an HTTP status code and structured details so the API layer can
    render every failure the same way.
    """

    status_code = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(HospitalAPIError):
    """Configuration error."""

    pass


class OAuthNotConfiguredError(ConfigError):
    """Raised when the OAuth client id or redirect URI is missing."""

    def __init__(self, missing: list[str] = None):
        details = {
            "missing": missing or [],
            "suggested_action": (
                "Set OIDC_CLIENT_ID and OIDC_REDIRECT_URI in the deployment "
                "configuration"
            ),
        }
        super().__init__("OAuth not configured", details)


class InputValidationError(HospitalAPIError):
    """Raised when request input fails validation.

    ``field_errors`` is a list of ``{"field": ..., "message": ...}`` dicts.
    """

    status_code = 400

    def __init__(self, field_errors: list[dict], message: str = "Validation failed"):
        super().__init__(message, {"errors": field_errors})
        self.field_errors = field_errors


class InvalidIdentifierError(HospitalAPIError):
    """Raised when a path identifier does not sanitize to a valid id."""

    status_code = 400

    def __init__(self, resource: str, value: object = None):
        message = f"Invalid {resource} ID format"
        details = {
            "resource": resource,
            "value_type": type(value).__name__,
        }
        super().__init__(message, details)


class ResourceNotFoundError(HospitalAPIError):
    """Raised when a well-formed identifier matches no record."""

    status_code = 404

    def __init__(self, resource: str, identifier: str):
        message = f"{resource.capitalize()} not found"
        details = {"resource": resource, "id": identifier}
        super().__init__(message, details)


class MissingPKCEVerifierError(HospitalAPIError):
    """Raised when the OAuth callback lacks a code or the PKCE verifier cookie."""

    status_code = 400

    def __init__(self, has_code: bool, has_verifier: bool):
        details = {
            "has_code": has_code,
            "has_verifier": has_verifier,
            "suggested_action": "Restart the login flow",
        }
        super().__init__("Missing authorization code or PKCE verifier", details)


class UpstreamProviderError(HospitalAPIError):
    """Raised when the identity provider rejects a request or is unreachable."""

    def __init__(self, operation: str, reason: str, status: int | None = None):
        message = f"Identity provider {operation} failed: {reason}"
        details = {
            "operation": operation,
            "reason": reason,
            "upstream_status": status,
        }
        super().__init__(message, details)


class MfaError(HospitalAPIError):
    """Raised when a two-factor setup or verification step is rejected."""

    status_code = 400
