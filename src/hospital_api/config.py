# src/hospital_api/config.py
"""Configuration management for hospital_api.

Configuration is read once at process start into an :class:`AppConfig` and
handed to the application factory. Request handlers get it through
``app.state.config``; nothing below the API layer reads ``os.environ``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import tomllib

from .errors import ConfigError
from .security.urls import validate_url

DEFAULT_JWT_SECRET = "JWT_SECRET"
DEFAULT_ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

GOOGLE_AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_ENDPOINT = "https://www.googleapis.com/oauth2/v2/userinfo"

PRODUCTION_ENVIRONMENTS = {"production", "prod"}


@dataclass
class OAuthConfig:
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None
    scope: str = "openid profile email"
    authorization_endpoint: str = GOOGLE_AUTHORIZATION_ENDPOINT
    token_endpoint: str = GOOGLE_TOKEN_ENDPOINT
    userinfo_endpoint: str = GOOGLE_USERINFO_ENDPOINT
    timeout_seconds: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.redirect_uri)

    def missing_settings(self) -> list[str]:
        missing = []
        if not self.client_id:
            missing.append("client_id")
        if not self.redirect_uri:
            missing.append("redirect_uri")
        return missing


@dataclass
class SecurityConfig:
    jwt_secret: str = DEFAULT_JWT_SECRET
    session_ttl_hours: int = 24
    allowed_hosts: list[str] = field(
        default_factory=lambda: list(DEFAULT_ALLOWED_HOSTS)
    )
    mfa_issuer: str = "HospitalApp"


@dataclass
class ServerConfig:
    frontend_origin: str = "http://localhost:5173"
    environment: str = "development"
    database_url: str = "sqlite:///hospital.db"


@dataclass
class AppConfig:
    oauth: OAuthConfig = field(default_factory=OAuthConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @property
    def is_production(self) -> bool:
        return self.server.environment.lower() in PRODUCTION_ENVIRONMENTS

    def validate(self) -> None:
        """Validate configuration, raising ConfigError if invalid.

        Missing OAuth client settings are allowed here; the login routes
        report them per request.
        """
        if self.is_production and self.security.jwt_secret == DEFAULT_JWT_SECRET:
            raise ConfigError(
                "JWT_SECRET must be set explicitly when ENVIRONMENT=production"
            )

        origin = self.server.frontend_origin
        if not origin.startswith(("http://", "https://")):
            raise ConfigError(
                f"Invalid frontend_origin '{origin}'. Must be an http(s) URL"
            )

        if self.security.session_ttl_hours <= 0:
            raise ConfigError(
                f"Invalid session_ttl_hours {self.security.session_ttl_hours}. "
                "Must be a positive number of hours"
            )

        if self.oauth.timeout_seconds <= 0:
            raise ConfigError(
                f"Invalid timeout_seconds {self.oauth.timeout_seconds}. "
                "Must be positive"
            )

        if not self.security.allowed_hosts:
            raise ConfigError("allowed_hosts must contain at least one hostname")

        # The login callback redirects here, so it must pass the URL guard
        if validate_url(origin, self.security.allowed_hosts) is None:
            raise ConfigError(
                f"Frontend origin '{origin}' is not in allowed_hosts",
                {"frontend_origin": origin},
            )


def _split_hosts(value: str) -> list[str]:
    return [h.strip().lower() for h in value.split(",") if h.strip()]


def _apply_environment(config: AppConfig, environ: Mapping[str, str]) -> None:
    """Override file/default values with environment variables."""
    oauth = config.oauth
    oauth.client_id = environ.get("OIDC_CLIENT_ID", oauth.client_id)
    oauth.client_secret = environ.get("OIDC_CLIENT_SECRET", oauth.client_secret)
    oauth.redirect_uri = environ.get("OIDC_REDIRECT_URI", oauth.redirect_uri)
    oauth.scope = environ.get("OIDC_SCOPE") or oauth.scope

    if "OAUTH_TIMEOUT_SECONDS" in environ:
        try:
            oauth.timeout_seconds = float(environ["OAUTH_TIMEOUT_SECONDS"])
        except ValueError as e:
            raise ConfigError(
                f"Invalid OAUTH_TIMEOUT_SECONDS '{environ['OAUTH_TIMEOUT_SECONDS']}'"
            ) from e

    security = config.security
    security.jwt_secret = environ.get("JWT_SECRET") or security.jwt_secret
    security.mfa_issuer = environ.get("MFA_ISSUER") or security.mfa_issuer
    if environ.get("ALLOWED_HOSTS"):
        security.allowed_hosts = _split_hosts(environ["ALLOWED_HOSTS"])

    server = config.server
    server.frontend_origin = environ.get("FRONTEND_ORIGIN") or server.frontend_origin
    server.database_url = environ.get("DATABASE_URL") or server.database_url
    server.environment = (
        environ.get("ENVIRONMENT") or environ.get("NODE_ENV") or server.environment
    )


def load_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from an optional TOML file plus the environment.

    Args:
        config_path: TOML file with [oauth], [security] and [server] tables
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        AppConfig with environment overrides applied
    """
    data: dict = {}
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        with open(config_path, "rb") as f:
            data = tomllib.load(f)

    oauth_data = data.get("oauth", {})
    oauth = OAuthConfig(
        client_id=oauth_data.get("client_id"),
        client_secret=oauth_data.get("client_secret"),
        redirect_uri=oauth_data.get("redirect_uri"),
        scope=oauth_data.get("scope", "openid profile email"),
        authorization_endpoint=oauth_data.get(
            "authorization_endpoint", GOOGLE_AUTHORIZATION_ENDPOINT
        ),
        token_endpoint=oauth_data.get("token_endpoint", GOOGLE_TOKEN_ENDPOINT),
        userinfo_endpoint=oauth_data.get(
            "userinfo_endpoint", GOOGLE_USERINFO_ENDPOINT
        ),
        timeout_seconds=float(oauth_data.get("timeout_seconds", 10.0)),
    )

    security_data = data.get("security", {})
    security = SecurityConfig(
        jwt_secret=security_data.get("jwt_secret", DEFAULT_JWT_SECRET),
        session_ttl_hours=int(security_data.get("session_ttl_hours", 24)),
        allowed_hosts=[
            h.lower()
            for h in security_data.get("allowed_hosts", DEFAULT_ALLOWED_HOSTS)
        ],
        mfa_issuer=security_data.get("mfa_issuer", "HospitalApp"),
    )

    server_data = data.get("server", {})
    server = ServerConfig(
        frontend_origin=server_data.get("frontend_origin", "http://localhost:5173"),
        environment=server_data.get("environment", "development"),
        database_url=server_data.get("database_url", "sqlite:///hospital.db"),
    )

    config = AppConfig(oauth=oauth, security=security, server=server)
    _apply_environment(config, os.environ if environ is None else environ)
    return config


def get_default_config_path() -> Path:
    """Get the default config file path."""
    return Path.home() / ".hospital_api" / "config.toml"
