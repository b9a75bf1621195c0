import asyncio
import time
from typing import Any, Callable

import jwt
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from authsession.models.config import HostedUIConfig


def encode_jwt(claims: dict[str, Any]) -> str:
    """Encode claims as an HS256 JWT. Signatures are never checked here."""
    return jwt.encode(claims, "test-secret", algorithm="HS256")


@pytest.fixture
def make_jwt() -> Callable[..., str]:
    """Factory for JWTs expiring ``expires_in`` seconds from now.

    Passing a claim as None leaves it out of the token.
    """

    def factory(expires_in: float = 3600, **claims: Any) -> str:
        now = int(time.time())
        payload = {"sub": "user-123", "iat": now, "exp": int(now + expires_in)}
        payload.update(claims)
        return encode_jwt({k: v for k, v in payload.items() if v is not None})

    return factory


@pytest.fixture
def config() -> HostedUIConfig:
    return HostedUIConfig(
        domain="https://auth.example.com",
        client_id="client-456",
        redirect_uri="https://myapp.com/callback",
        logout_redirect_uri="https://myapp.com/",
    )


async def yield_to_event_loop(seconds: float = 0.01) -> None:
    """Let the event loop process pending tasks and callbacks."""
    await asyncio.sleep(seconds)


@pytest.fixture
def yield_loop():
    """Helper to yield to event loop in tests."""
    return yield_to_event_loop


class InMemoryKeyring(KeyringBackend):
    """Keyring backend that keeps passwords in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.passwords: dict[tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.passwords.get((service, username))

    def set_password(self, service, username, password):
        self.passwords[(service, username)] = password

    def delete_password(self, service, username):
        if (service, username) not in self.passwords:
            raise PasswordDeleteError(username)
        del self.passwords[(service, username)]


@pytest.fixture
def keyring_backend() -> InMemoryKeyring:
    return InMemoryKeyring()
