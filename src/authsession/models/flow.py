"""Authorization flow models for the hosted login flow.

Contains models for authorization and logout requests, raw callback
parameters, and the classified outcome of a callback.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the code flow with PKCE."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    state: str
    scope: str
    code_challenge_method: str = "S256"
    screen_hint: str | None = None
    extra_params: tuple[tuple[str, str], ...] = ()

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": self.scope,
            "redirect_uri": self.redirect_uri,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }

        if self.screen_hint:
            params["screen_hint"] = self.screen_hint
        for key, value in self.extra_params:
            params.setdefault(key, value)

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class LogoutRequest:
    """Provider-side logout redirect parameters."""

    logout_endpoint: str
    client_id: str
    logout_uri: str

    def build_logout_url(self) -> str:
        params = {"client_id": self.client_id, "logout_uri": self.logout_uri}
        return f"{self.logout_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class CallbackParams:
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    def is_callback(self) -> bool:
        return self.code is not None or self.error is not None


class ErrorCategory(str, Enum):
    """Who should act on a failed login.

    USER_DECLINED is a benign cancellation and CONFIGURATION points at the
    client registration. SECURITY and PROTOCOL require a fresh login attempt.
    EXCHANGE is a token endpoint or network failure; INTERNAL means the login
    could not even be prepared locally.
    """

    USER_DECLINED = "user_declined"
    CONFIGURATION = "configuration"
    INVALID_REQUEST = "invalid_request"
    PROVIDER = "provider"
    PROTOCOL = "protocol"
    SECURITY = "security"
    EXCHANGE = "exchange"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ProviderError:
    """The provider redirected back with an ``error`` parameter."""

    code: str
    description: str | None
    category: ErrorCategory
    message: str


@dataclass(frozen=True)
class MissingCode:
    """The callback carried neither an error nor an authorization code."""

    category: ErrorCategory = ErrorCategory.PROTOCOL
    message: str = "Invalid callback - no authorization code"


@dataclass(frozen=True)
class SessionExpired:
    """No verifier/state was stored for this callback."""

    category: ErrorCategory = ErrorCategory.SECURITY
    message: str = "Session expired - please try again"


@dataclass(frozen=True)
class StateMismatch:
    """The returned state does not match the stored one (possible CSRF)."""

    category: ErrorCategory = ErrorCategory.SECURITY
    message: str = "Invalid state - security check failed"


@dataclass(frozen=True)
class Authorized:
    """A valid callback ready for code exchange."""

    code: str
    code_verifier: str
    redirect_url: str | None = None


CallbackOutcome = (
    ProviderError | MissingCode | SessionExpired | StateMismatch | Authorized
)
