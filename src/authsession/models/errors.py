"""Exception hierarchy for hosted-login session errors.

Provides specific exception types for the unexpected failure modes of the
session manager. Expected negative results (a declined login, a failed
refresh) are returned as values instead and never raise.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 session errors."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when the hosted login configuration is missing or invalid."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class AuthorizationError(OAuth2Error):
    """Raised when an authorization request cannot be started."""

    pass


class TokenError(OAuth2Error):
    """Raised when token operations fail."""

    pass


class TokenExchangeError(TokenError):
    """Raised when authorization code to token exchange fails.

    Attributes:
        status: HTTP status returned by the token endpoint, or None when the
            request never produced a response
        body: Raw response body (or transport error text)
    """

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class StorageError(OAuth2Error):
    """Raised by key-value media when a read or write fails."""

    pass
