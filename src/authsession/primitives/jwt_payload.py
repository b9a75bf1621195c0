"""JWT payload decoding and token expiry helpers.

Payloads are decoded WITHOUT signature validation. They are only used for
displaying identity claims and estimating expiry; validating tokens is the
job of the provider and of the APIs the tokens are sent to.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import jwt

if TYPE_CHECKING:
    from authsession.models.tokens import TokenSet

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_MARGIN_SECONDS = 300.0


def decode_jwt_payload(token: str | None) -> dict[str, Any] | None:
    """Decode the payload of a JWT without verifying it.

    Args:
        token: Encoded JWT

    Returns:
        The payload claims, or None if the token is not a decodable JWT
    """
    if not token or token.count(".") != 2:
        return None
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.debug(f"Could not decode JWT payload: {e}")
        return None


def is_token_expired(
    tokens: TokenSet,
    margin_seconds: float = DEFAULT_EXPIRY_MARGIN_SECONDS,
    now: float | None = None,
) -> bool:
    """Check whether the access token expires within ``margin_seconds``.

    A token whose expiry cannot be determined is treated as expired.
    """
    expires_at = tokens.expires_at
    if expires_at is None:
        return True
    current = time.time() if now is None else now
    return (expires_at - current) < margin_seconds


def seconds_until_expiry(tokens: TokenSet, now: float | None = None) -> int | None:
    """Whole seconds until the access token expires, None once expired."""
    expires_at = tokens.expires_at
    if expires_at is None:
        return None
    current = time.time() if now is None else now
    remaining = int(expires_at - current)
    return remaining if remaining > 0 else None
