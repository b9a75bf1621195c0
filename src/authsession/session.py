"""Authentication session manager.

Owns the authoritative session state for a hosted login: starting logins,
completing callbacks, restoring persisted sessions, proactive refresh and
logout. Everything else in an application reads the session through this
object's read-only surface and ``subscribe``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable

from authsession.models.claims import IdentityClaims
from authsession.models.config import HostedUIConfig
from authsession.models.errors import AuthorizationError, TokenExchangeError
from authsession.models.flow import (
    Authorized,
    CallbackOutcome,
    ErrorCategory,
    ProviderError,
)
from authsession.models.state import SessionError, SessionState, SessionStatus
from authsession.models.tokens import RefreshTokenRequest, TokenRequest, TokenSet
from authsession.navigation import UserAgent
from authsession.primitives.jwt_payload import is_token_expired
from authsession.services.exchange import ExchangeStore
from authsession.services.flow import (
    OAuth2FlowManager,
    is_oauth_callback,
    strip_callback_params,
)
from authsession.services.scheduler import RefreshScheduler
from authsession.services.token_store import TokenStore
from authsession.services.tokens import OAuth2TokenManager

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]


class SessionManager:
    """State machine for one user's authenticated session.

    States: unauthenticated, authenticating, authenticated and error. The
    refresh scheduler runs exactly while the session is authenticated.

    Args:
        config: Client registration, endpoints and refresh timing
        user_agent: Performs login/logout navigation and strips callback
            parameters from the visible location
        token_store: Token cache. Defaults to process memory, which does not
            survive a restart; pass ``TokenStore(KeyringKeyValueStore())``
            to keep the session across application launches.
        exchange_store: Verifier/state storage for the in-flight login
        token_manager: Token endpoint client
        flow_manager: Authorization flow service
    """

    def __init__(
        self,
        config: HostedUIConfig,
        user_agent: UserAgent,
        token_store: TokenStore | None = None,
        exchange_store: ExchangeStore | None = None,
        token_manager: OAuth2TokenManager | None = None,
        flow_manager: OAuth2FlowManager | None = None,
    ):
        self.config = config
        self.user_agent = user_agent
        self.token_store = token_store or TokenStore()
        self.exchange_store = exchange_store or ExchangeStore()
        self.token_manager = token_manager or OAuth2TokenManager(
            timeout=config.http_timeout
        )
        self.flow_manager = flow_manager or OAuth2FlowManager(
            config, self.exchange_store, user_agent
        )
        self.scheduler = RefreshScheduler(
            self.refresh_if_needed, config.refresh_interval_seconds
        )

        self._state = SessionState()
        self._listeners: list[StateListener] = []
        self._refresh_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Read-only surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def tokens(self) -> TokenSet | None:
        return self._state.tokens

    @property
    def last_error(self) -> SessionError | None:
        return self._state.error

    @property
    def current_claims(self) -> IdentityClaims | None:
        """Identity claims from the current ID token, recomputed on access."""
        tokens = self._state.tokens
        if tokens is None:
            return None
        return IdentityClaims.from_id_token(tokens.id_token)

    @property
    def user_email(self) -> str | None:
        claims = self.current_claims
        return claims.display_name if claims else None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with every new state.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def initialize(self, current_url: str | None = None) -> SessionState:
        """Restore the session when the application starts.

        If ``current_url`` is a provider redirect, the callback is handled.
        Otherwise persisted tokens are used: unexpired tokens authenticate
        without a network round trip, expired ones get exactly one refresh
        attempt and are cleared if it fails.

        Args:
            current_url: The location the application was opened with

        Returns:
            SessionState: The state after the boot check
        """
        if current_url and is_oauth_callback(current_url):
            logger.debug("Detected OAuth callback on startup")
            try:
                await self.handle_callback(current_url)
            except TokenExchangeError:
                # Already reflected in the error state
                pass
            return self._state

        if self._state.status is not SessionStatus.UNAUTHENTICATED:
            return self._state

        generation = self._state.generation
        self._transition(checking=True)

        stored = await self.token_store.load()
        if stored is None:
            logger.info("No stored tokens found")
            self._transition(checking=False)
            return self._state

        if not is_token_expired(stored, self.config.refresh_margin_seconds):
            logger.info("Restored session from stored tokens")
            self._authenticate(stored)
            return self._state

        logger.info("Stored access token expired, attempting refresh")
        refreshed = await self._refresh_grant(stored)

        if (
            self._state.generation != generation
            or self._state.status is not SessionStatus.UNAUTHENTICATED
        ):
            logger.info("Session changed during startup refresh, discarding result")
            self._transition(checking=False)
            return self._state

        if refreshed is None:
            logger.info("Startup refresh failed, clearing stored session")
            await self.token_store.clear()
            self._transition(checking=False)
            return self._state

        self._authenticate(refreshed)
        await self.token_store.save(refreshed)
        return self._state

    async def login(
        self,
        screen_hint: str | None = None,
        redirect_url: str | None = None,
    ) -> str | None:
        """Start a login by redirecting the user agent to the provider.

        Allowed while unauthenticated, in error, or to restart a pending
        login. Does nothing when already authenticated.

        Args:
            screen_hint: Optional hosted UI hint such as ``"signup"``
            redirect_url: Post-login redirect target to carry in the state

        Returns:
            The authorization URL navigated to, or None if already
            authenticated

        Raises:
            AuthorizationError: If the login could not be prepared
        """
        if self._state.is_authenticated:
            logger.debug("Login requested while already authenticated")
            return None

        logger.info("Initiating login flow")
        self._transition(status=SessionStatus.AUTHENTICATING, error=None)

        try:
            url = await self.flow_manager.start_authorization_flow(
                screen_hint=screen_hint,
                redirect_url=redirect_url,
                embed_verifier=redirect_url is not None,
            )
        except AuthorizationError:
            logger.exception("Login initiation failed")
            self._fail(ErrorCategory.INTERNAL, "Failed to initiate login")
            raise

        self.user_agent.navigate(url)
        return url

    async def signup(self, redirect_url: str | None = None) -> str | None:
        """Start a login on the provider's sign-up screen."""
        return await self.login(screen_hint="signup", redirect_url=redirect_url)

    async def handle_callback(self, callback_url: str) -> CallbackOutcome | None:
        """Complete a login from the provider's redirect.

        Provider errors, missing codes, expired exchanges and state
        mismatches move the session to the error state and are returned, not
        raised. A callback that arrives while already authenticated is
        ignored: the session and its tokens are left as they are, and only
        the pending exchange and the callback parameters are cleared.

        Tokens that are already inside the refresh margin when the exchange
        returns are refreshed before this method returns; if that refresh
        fails the session is logged out.

        Args:
            callback_url: Full redirect URL

        Returns:
            CallbackOutcome: How the callback was classified, or None if it
            was ignored because the session is already authenticated

        Raises:
            TokenExchangeError: If the code exchange failed. The session is
                in the error state and ``login()`` may be retried.
        """
        if self._state.is_authenticated:
            logger.info("Ignoring OAuth callback while already authenticated")
            await self.exchange_store.clear()
            self.user_agent.replace_location(strip_callback_params(callback_url))
            return None

        logger.info("Processing OAuth callback")
        self._transition(status=SessionStatus.AUTHENTICATING, error=None)

        outcome = await self.flow_manager.interpret_callback(callback_url)
        if not isinstance(outcome, Authorized):
            code = outcome.code if isinstance(outcome, ProviderError) else None
            self._fail(outcome.category, outcome.message, code)
            return outcome

        generation = self._state.generation
        token_request = TokenRequest(
            token_endpoint=self.config.token_endpoint,
            code=outcome.code,
            redirect_uri=self.config.redirect_uri,
            client_id=self.config.client_id,
            code_verifier=outcome.code_verifier,
        )
        try:
            tokens = await self.token_manager.exchange_code(token_request)
        except TokenExchangeError as e:
            logger.warning(f"Token exchange failed: {e}")
            if self._state.generation == generation:
                self._fail(ErrorCategory.EXCHANGE, "Failed to complete authentication")
            raise

        if self._state.generation != generation:
            logger.info("Session changed during code exchange, discarding tokens")
            return outcome

        self._authenticate(tokens)
        await self.token_store.save(tokens)
        logger.info("Authentication complete")

        if is_token_expired(tokens, self.config.refresh_margin_seconds):
            logger.info("Issued access token is already near expiry, refreshing")
            await self.refresh()
        return outcome

    async def logout(self, redirect: bool = True) -> None:
        """End the session locally and at the provider.

        Stops the refresh scheduler before any state is cleared, drops the
        persisted tokens and any pending exchange, then navigates to the
        provider's logout endpoint.

        Args:
            redirect: Navigate the user agent to the provider logout page
        """
        logger.info("Logging out")
        self.scheduler.stop()
        self._transition(
            status=SessionStatus.UNAUTHENTICATED,
            tokens=None,
            error=None,
            generation=self._state.generation + 1,
            checking=False,
        )

        await self.token_store.clear()
        await self.exchange_store.clear()

        if redirect:
            self.user_agent.navigate(self.flow_manager.build_logout_url())

    async def refresh(self) -> bool:
        """Renew the token set with the refresh token.

        The result is applied only if the session is still authenticated
        with the same tokens it was requested for; anything else is stale and
        discarded. A failed refresh forces a logout.

        Returns:
            True if the session is authenticated with fresh tokens
        """
        generation = self._state.generation
        async with self._refresh_lock:
            if self._state.generation != generation:
                # Another caller refreshed or logged out while we waited
                return self._state.is_authenticated

            current = self._state
            if not current.is_authenticated or current.tokens is None:
                return False

            refreshed = await self._refresh_grant(current.tokens)

            if self._state.generation != generation or not self.is_authenticated:
                logger.info("Discarding refresh result for a session that changed")
                return False

            if refreshed is None:
                logger.warning("Token refresh failed, logging out")
                await self.logout()
                return False

            self._authenticate(refreshed)
            await self.token_store.save(refreshed)
            logger.info("Tokens refreshed")
            return True

    async def refresh_if_needed(self) -> bool:
        """Refresh when the access token is within the safety margin.

        This is the refresh scheduler's tick.

        Returns:
            True if the session is authenticated afterwards
        """
        tokens = self._state.tokens
        if not self._state.is_authenticated or tokens is None:
            return False
        if not is_token_expired(tokens, self.config.refresh_margin_seconds):
            return True
        logger.info("Access token near expiry, refreshing")
        return await self.refresh()

    async def get_access_token(self) -> str | None:
        """Return a usable access token for API calls.

        An access token inside the expiry margin is refreshed once first;
        if that fails the session is logged out and None is returned.
        """
        if not await self.refresh_if_needed():
            return None
        tokens = self._state.tokens
        return tokens.access_token if tokens else None

    async def close(self) -> None:
        """Stop background work and close network resources."""
        self.scheduler.stop()
        await self.token_manager.close()

    async def __aenter__(self) -> SessionManager:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _refresh_grant(self, tokens: TokenSet) -> TokenSet | None:
        if not tokens.can_refresh():
            logger.info("No refresh token available")
            return None
        refresh_request = RefreshTokenRequest(
            token_endpoint=self.config.token_endpoint,
            refresh_token=tokens.refresh_token,
            client_id=self.config.client_id,
        )
        return await self.token_manager.refresh(refresh_request)

    def _authenticate(self, tokens: TokenSet) -> None:
        self._transition(
            status=SessionStatus.AUTHENTICATED,
            tokens=tokens,
            error=None,
            generation=self._state.generation + 1,
            checking=False,
        )

    def _fail(
        self, category: ErrorCategory, message: str, code: str | None = None
    ) -> None:
        self._transition(
            status=SessionStatus.ERROR,
            error=SessionError(category=category, message=message, code=code),
            checking=False,
        )

    def _transition(self, **changes: object) -> None:
        previous = self._state
        self._state = dataclasses.replace(previous, **changes)

        if self._state.status is SessionStatus.AUTHENTICATED:
            self.scheduler.start()
        else:
            self.scheduler.stop()

        if self._state.status is not previous.status:
            logger.debug(
                f"Session {previous.status.value} -> {self._state.status.value}"
            )

        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Session state listener failed")
