"""Version management for hospital_api."""

# Package version
PACKAGE_VERSION = "0.1.0"

# Version of the session token claims layout.
# MAJOR: claims removed or renamed
# MINOR: claims added (backward compatible)
TOKEN_CLAIMS_VERSION = "1.0"


def get_package_version() -> str:
    """Get the current package version."""
    return PACKAGE_VERSION


def get_token_claims_version() -> str:
    """Get the current session token claims version."""
    return TOKEN_CLAIMS_VERSION


def is_token_claims_compatible(version: str) -> bool:
    """Check if a token claims version can be read by this release.

    Args:
        version: Claims version to check (e.g., "1.0")

    Returns:
        True if compatible (same major version)
    """
    try:
        parts = version.split(".")
        current_parts = TOKEN_CLAIMS_VERSION.split(".")

        if len(parts) != 2 or len(current_parts) != 2:
            return False

        return parts[0] == current_parts[0]

    except (AttributeError, ValueError, IndexError):
        return False
