"""PKCE (Proof Key for Code Exchange) generator.

Implements RFC 7636 parameter generation to prevent authorization code
interception attacks. Only the S256 challenge method is supported.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from authsession.models.errors import PKCEError
from authsession.models.security import PKCEParameters

VERIFIER_ENTROPY_BYTES = 32


def new_verifier(entropy_bytes: int = VERIFIER_ENTROPY_BYTES) -> str:
    """Generate a cryptographically secure code verifier.

    RFC 7636 Section 4.1: the verifier must be 43-128 characters from the
    unreserved set [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~". Base64url
    without padding of at least 32 random bytes stays inside that set.

    Args:
        entropy_bytes: Number of random bytes (32-96)

    Returns:
        The encoded code verifier
    """
    if not 32 <= entropy_bytes <= 96:
        raise ValueError("entropy_bytes must be between 32 and 96")
    return _b64url(secrets.token_bytes(entropy_bytes))


def challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge for a verifier.

    RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return _b64url(digest)


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates PKCE parameters for authorization flows.

    PKCE binds the authorization code to the client that started the flow:
    only the holder of the verifier can redeem the code.
    """

    def __init__(self, entropy_bytes: int = VERIFIER_ENTROPY_BYTES):
        self.entropy_bytes = entropy_bytes

    def new_verifier(self) -> str:
        return new_verifier(self.entropy_bytes)

    def challenge(self, code_verifier: str) -> str:
        return challenge(code_verifier)

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Returns:
            PKCEParameters: Immutable parameters for the authorization flow

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            code_verifier = self.new_verifier()
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=self.challenge(code_verifier),
                code_challenge_method="S256",
            )
        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e
