"""Security utilities for the hosted login flow.

Provides cryptographically secure CSRF state generation and comparison, and
redirect URI checks.
"""

from __future__ import annotations

import base64
import binascii
import json
import secrets
from typing import Any
from urllib.parse import urlparse


def generate_state(
    code_verifier: str | None = None, redirect_url: str | None = None
) -> str:
    """Generate a cryptographically secure state parameter.

    The state parameter provides CSRF protection by ensuring the callback
    matches the original authorization request. When ``code_verifier`` is
    given, the random value is wrapped together with the verifier and the
    post-login redirect target in base64url-encoded JSON, so a backend that
    only sees the callback can complete the PKCE exchange.

    Args:
        code_verifier: Optional PKCE verifier to embed
        redirect_url: Optional post-login redirect target to embed

    Returns:
        URL-safe state string without padding
    """
    random_state = _b64url(secrets.token_bytes(16))
    if code_verifier is None:
        return random_state

    state_data = {
        "state": random_state,
        "code_verifier": code_verifier,
        "redirect_url": redirect_url,
    }
    return _b64url(json.dumps(state_data, separators=(",", ":")).encode("utf-8"))


def decode_state(state: str) -> dict[str, Any] | None:
    """Decode an embedded state produced by ``generate_state``.

    Returns:
        The embedded fields, or None for an opaque random state
    """
    padded = state + "=" * (-len(state) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    if not isinstance(data, dict) or "state" not in data:
        return None
    return data


def states_match(expected: str | None, actual: str | None) -> bool:
    """Compare two state values in constant time. Missing values never match."""
    if not expected or not actual:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8"))


def validate_redirect_uri(uri: str) -> bool:
    """Validate redirect URI is HTTPS or plain HTTP on localhost.

    Args:
        uri: Redirect URI to validate

    Returns:
        True if URI is acceptable
    """
    try:
        parsed = urlparse(uri)
    except ValueError:
        return False
    return parsed.scheme == "https" or (
        parsed.scheme == "http" and parsed.hostname in ("localhost", "127.0.0.1")
    )


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")
