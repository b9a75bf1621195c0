"""Token set and token endpoint models.

Contains the immutable token set owned by the session, the token endpoint
request parameters, and token response handling.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from authsession.primitives.jwt_payload import decode_jwt_payload


class TokenSet(BaseModel):
    """Tokens issued for the current session.

    ``issued_at`` is recorded locally so that expiry can be estimated for
    opaque access tokens that carry no ``exp`` claim.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(min_length=1)
    id_token: str | None = None
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    issued_at: float = Field(default_factory=time.time)

    @property
    def expires_at(self) -> float | None:
        """Access token expiry as a Unix timestamp.

        Uses the access token's ``exp`` claim when it is a decodable JWT,
        otherwise ``issued_at + expires_in``. None if neither is known.
        """
        payload = decode_jwt_payload(self.access_token)
        if payload is not None and isinstance(payload.get("exp"), int | float):
            return float(payload["exp"])
        if self.expires_in is None:
            return None
        return self.issued_at + self.expires_in

    def can_refresh(self) -> bool:
        """Check if token can be refreshed."""
        return bool(self.refresh_token)


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636).
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).

        Returns:
            Dictionary suitable for httpx data parameter
        """
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "code": self.code,
            "code_verifier": self.code_verifier,
        }


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token request parameters (RFC 6749 Section 6)."""

    token_endpoint: str
    refresh_token: str
    client_id: str

    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request."""
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "refresh_token": self.refresh_token,
        }


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5).

    Represents both successful responses (Section 5.1) and error responses
    (Section 5.2).
    """

    model_config = ConfigDict(extra="ignore")

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    scope: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return self.error is None and bool(self.access_token)

    def to_token_set(self, previous_refresh_token: str | None = None) -> TokenSet:
        """Convert a successful response into a TokenSet.

        Args:
            previous_refresh_token: Refresh token to carry forward when the
                provider does not rotate it

        Returns:
            TokenSet stamped with the current time

        Raises:
            ValueError: If response is not successful
        """
        if not self.is_success():
            raise ValueError("Cannot convert error response to TokenSet")

        return TokenSet(
            access_token=self.access_token,
            id_token=self.id_token,
            refresh_token=self.refresh_token or previous_refresh_token,
            token_type=self.token_type or "Bearer",
            expires_in=self.expires_in,
            issued_at=time.time(),
        )
