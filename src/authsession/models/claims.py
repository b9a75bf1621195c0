"""Identity claims read from an ID token.

A derived, read-only view over the ID token payload. Claims are recomputed
from the token set on demand and never persisted on their own.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from authsession.primitives.jwt_payload import decode_jwt_payload


class IdentityClaims(BaseModel):
    """Subject, email and group memberships asserted by the provider."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    subject: str = Field(alias="sub")
    email: str | None = None
    email_verified: bool | None = None
    username: str | None = Field(default=None, alias="cognito:username")
    groups: list[str] = Field(default_factory=list, alias="cognito:groups")
    issuer: str | None = Field(default=None, alias="iss")
    audience: str | list[str] | None = Field(default=None, alias="aud")
    issued_at: int | None = Field(default=None, alias="iat")
    expires_at: int | None = Field(default=None, alias="exp")
    token_use: str | None = None

    @property
    def display_name(self) -> str | None:
        """Email, falling back to the provider username."""
        return self.email or self.username

    def in_group(self, group: str) -> bool:
        return group in self.groups

    @classmethod
    def from_id_token(cls, id_token: str | None) -> IdentityClaims | None:
        """Extract claims from an encoded ID token.

        Returns:
            The claims, or None when the token is missing, undecodable or
            lacks a subject
        """
        payload = decode_jwt_payload(id_token)
        if payload is None:
            return None
        try:
            return cls.model_validate(payload)
        except ValidationError:
            return None
