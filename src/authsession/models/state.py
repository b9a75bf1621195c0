"""Session state models.

The session state is an immutable snapshot. The session manager replaces it
on every transition; nothing else creates or mutates one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from authsession.models.flow import ErrorCategory
from authsession.models.tokens import TokenSet


class SessionStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


@dataclass(frozen=True)
class SessionError:
    """Why the last login attempt failed, in user-facing terms."""

    category: ErrorCategory
    message: str
    code: str | None = None


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the authenticated session.

    ``generation`` increases whenever the token set is replaced or cleared,
    so late refresh results can be matched against the tokens they were
    requested for.
    """

    status: SessionStatus = SessionStatus.UNAUTHENTICATED
    tokens: TokenSet | None = None
    error: SessionError | None = None
    generation: int = 0
    checking: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED and self.tokens is not None

    @property
    def is_loading(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATING or self.checking
