"""Tests for unverified JWT decoding and expiry estimation."""

import time

import pytest

from authsession.models.tokens import TokenSet
from authsession.primitives.jwt_payload import (
    decode_jwt_payload,
    is_token_expired,
    seconds_until_expiry,
)


class TestDecodeJwtPayload:
    def test_decodes_claims_without_verifying_signature(self, make_jwt):
        # Arrange
        token = make_jwt(email="user@example.com")

        # Act
        payload = decode_jwt_payload(token)

        # Assert
        assert payload is not None
        assert payload["sub"] == "user-123"
        assert payload["email"] == "user@example.com"

    @pytest.mark.parametrize(
        "token",
        [None, "", "opaque-access-token", "a.b", "a.b.c.d", "not.a.jwt"],
    )
    def test_malformed_tokens_return_none(self, token):
        assert decode_jwt_payload(token) is None

    def test_expired_token_still_decodes(self, make_jwt):
        # Arrange - expiry is estimated, never enforced by the decoder
        token = make_jwt(expires_in=-60)

        # Act
        payload = decode_jwt_payload(token)

        # Assert
        assert payload is not None
        assert payload["exp"] < time.time()


class TestTokenExpiry:
    def test_token_inside_margin_is_expired(self, make_jwt):
        # Arrange - 4 minutes left against a 5 minute margin
        tokens = TokenSet(access_token=make_jwt(expires_in=240))

        # Act & Assert
        assert is_token_expired(tokens, margin_seconds=300)

    def test_token_outside_margin_is_not_expired(self, make_jwt):
        # Arrange - 10 minutes left
        tokens = TokenSet(access_token=make_jwt(expires_in=600))

        # Act & Assert
        assert not is_token_expired(tokens, margin_seconds=300)

    def test_opaque_token_uses_expires_in(self):
        # Arrange
        now = time.time()
        tokens = TokenSet(access_token="opaque", expires_in=3600, issued_at=now)

        # Act & Assert
        assert not is_token_expired(tokens, now=now)
        assert is_token_expired(tokens, now=now + 3400)

    def test_unknown_expiry_counts_as_expired(self):
        # Arrange
        tokens = TokenSet(access_token="opaque")

        # Act & Assert
        assert tokens.expires_at is None
        assert is_token_expired(tokens)

    def test_jwt_exp_wins_over_expires_in(self, make_jwt):
        # Arrange
        access_token = make_jwt(expires_in=60)
        tokens = TokenSet(access_token=access_token, expires_in=3600)

        # Act & Assert
        assert is_token_expired(tokens, margin_seconds=300)

    def test_seconds_until_expiry(self):
        # Arrange
        tokens = TokenSet(access_token="opaque", expires_in=100, issued_at=1000.0)

        # Act & Assert
        assert seconds_until_expiry(tokens, now=1040.0) == 60
        assert seconds_until_expiry(tokens, now=1100.0) is None
        assert seconds_until_expiry(TokenSet(access_token="opaque")) is None
