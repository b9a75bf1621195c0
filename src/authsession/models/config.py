"""Hosted login configuration.

Holds the client registration and endpoint settings for an identity provider
that exposes Cognito-style Hosted UI endpoints (``/oauth2/authorize``,
``/oauth2/token`` and ``/logout``). Explicit endpoint overrides allow any
standard OAuth 2.0 provider.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from authsession.models.errors import ConfigurationError
from authsession.services.security import validate_redirect_uri

DEFAULT_SCOPE = "openid email"
DEFAULT_REFRESH_INTERVAL_SECONDS = 60.0
DEFAULT_REFRESH_MARGIN_SECONDS = 300.0


class HostedUIConfig(BaseModel):
    """Client registration and endpoints for the hosted login flow."""

    domain: str
    client_id: str = Field(min_length=1)
    redirect_uri: str = Field(min_length=1)
    scope: str = DEFAULT_SCOPE
    logout_redirect_uri: str | None = None

    # Explicit overrides for providers without Cognito-style paths
    authorize_url: str | None = None
    token_url: str | None = None
    logout_url: str | None = None

    refresh_interval_seconds: float = Field(
        default=DEFAULT_REFRESH_INTERVAL_SECONDS, gt=0
    )
    refresh_margin_seconds: float = Field(default=DEFAULT_REFRESH_MARGIN_SECONDS, ge=0)
    http_timeout: float = Field(default=30.0, gt=0)

    @field_validator("domain")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("domain must not be empty")
        return v

    @field_validator("redirect_uri", "logout_redirect_uri")
    @classmethod
    def require_secure_redirect(cls, v: str | None) -> str | None:
        if v is not None and not validate_redirect_uri(v):
            raise ValueError(
                f"redirect URI must use https or http on localhost: {v}"
            )
        return v

    @property
    def authorize_endpoint(self) -> str:
        return self.authorize_url or f"{self.domain}/oauth2/authorize"

    @property
    def token_endpoint(self) -> str:
        return self.token_url or f"{self.domain}/oauth2/token"

    @property
    def logout_endpoint(self) -> str:
        return self.logout_url or f"{self.domain}/logout"

    @property
    def post_logout_redirect_uri(self) -> str:
        """Where the provider sends the user agent after logout."""
        return self.logout_redirect_uri or self.redirect_uri

    @classmethod
    def from_env(
        cls, prefix: str = "AUTHSESSION_", dotenv: bool = True
    ) -> HostedUIConfig:
        """Build a configuration from environment variables.

        Reads ``{prefix}DOMAIN``, ``{prefix}CLIENT_ID``,
        ``{prefix}REDIRECT_URI`` and the optional ``SCOPE``,
        ``LOGOUT_REDIRECT_URI``, ``AUTHORIZE_URL``, ``TOKEN_URL`` and
        ``LOGOUT_URL``.

        Args:
            prefix: Environment variable prefix
            dotenv: Load a ``.env`` file into the environment first

        Returns:
            HostedUIConfig: The loaded configuration

        Raises:
            ConfigurationError: If required values are missing or invalid
        """
        if dotenv:
            load_dotenv()

        required = ("DOMAIN", "CLIENT_ID", "REDIRECT_URI")
        missing = [
            f"{prefix}{name}" for name in required if not os.getenv(f"{prefix}{name}")
        ]
        if missing:
            raise ConfigurationError(
                f"Missing hosted login configuration: {', '.join(missing)}"
            )

        values: dict[str, str] = {}
        for name in (
            *required,
            "SCOPE",
            "LOGOUT_REDIRECT_URI",
            "AUTHORIZE_URL",
            "TOKEN_URL",
            "LOGOUT_URL",
        ):
            value = os.getenv(f"{prefix}{name}")
            if value:
                values[name.lower()] = value

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid hosted login configuration: {e}"
            ) from e
