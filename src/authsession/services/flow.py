"""Authorization flow service.

Starts authorization code flows with PKCE and interprets the provider's
redirect back to the application, including CSRF state validation and
one-shot cleanup of the pending exchange.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

from authsession.models.config import HostedUIConfig
from authsession.models.errors import AuthorizationError, StorageError
from authsession.models.flow import (
    AuthorizationRequest,
    Authorized,
    CallbackOutcome,
    CallbackParams,
    ErrorCategory,
    LogoutRequest,
    MissingCode,
    ProviderError,
    SessionExpired,
    StateMismatch,
)
from authsession.navigation import UserAgent
from authsession.primitives.pkce import PKCEManager
from authsession.services.exchange import ExchangeStore
from authsession.services.security import decode_state, generate_state, states_match

logger = logging.getLogger(__name__)

CALLBACK_PARAMS = ("code", "state", "error", "error_description")

_PROVIDER_ERRORS: dict[str, tuple[ErrorCategory, str]] = {
    "access_denied": (
        ErrorCategory.USER_DECLINED,
        "Access denied. You cancelled the sign-in or do not have access.",
    ),
    "unauthorized_client": (
        ErrorCategory.CONFIGURATION,
        "The client is not authorized. Contact your administrator.",
    ),
    "unsupported_response_type": (
        ErrorCategory.CONFIGURATION,
        "Configuration error. Contact your administrator.",
    ),
    "invalid_scope": (
        ErrorCategory.CONFIGURATION,
        "Invalid scope configuration. Contact your administrator.",
    ),
}


def parse_callback_params(callback_url: str) -> CallbackParams:
    """Extract the OAuth parameters from a redirect URL.

    Empty values are treated as absent.
    """
    query_params = parse_qs(urlsplit(callback_url).query)

    def get_single_param(key: str) -> str | None:
        values = query_params.get(key, [])
        return values[0] if values else None

    return CallbackParams(
        code=get_single_param("code"),
        state=get_single_param("state"),
        error=get_single_param("error"),
        error_description=get_single_param("error_description"),
    )


def is_oauth_callback(url: str) -> bool:
    """Check if a URL carries an authorization code or provider error."""
    return parse_callback_params(url).is_callback()


def strip_callback_params(url: str) -> str:
    """Remove the OAuth callback parameters, keeping everything else."""
    parts = urlsplit(url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in CALLBACK_PARAMS
    ]
    return urlunsplit(parts._replace(query=urlencode(query)))


def describe_provider_error(
    error: str, description: str | None = None
) -> tuple[ErrorCategory, str]:
    """Map a provider error code to a category and user-facing message.

    Scope problems reported as ``invalid_request`` are configuration errors;
    other ``invalid_request`` errors are retryable. Unknown codes fall back
    to the provider's description.
    """
    if error == "invalid_request":
        if description and "scope" in description.lower():
            return (
                ErrorCategory.CONFIGURATION,
                "Scope configuration error. Contact your administrator.",
            )
        return ErrorCategory.INVALID_REQUEST, "Invalid request. Please try again."

    if error in _PROVIDER_ERRORS:
        return _PROVIDER_ERRORS[error]

    return ErrorCategory.PROVIDER, description or error or "Authentication failed"


class OAuth2FlowManager:
    """Orchestrates the authorization code flow for a hosted login.

    Handles the flow from initial request generation through callback
    interpretation, including:
    - PKCE parameter generation
    - State parameter security (CSRF protection)
    - Authorization and logout URL construction
    - Callback classification and cleanup

    Args:
        config: Client registration and endpoints
        exchange_store: Storage for the in-flight verifier/state pair
        user_agent: Optional user agent whose visible location is cleaned
            after a callback
        pkce_manager: PKCE generator
    """

    def __init__(
        self,
        config: HostedUIConfig,
        exchange_store: ExchangeStore,
        user_agent: UserAgent | None = None,
        pkce_manager: PKCEManager | None = None,
    ):
        self.config = config
        self.exchange_store = exchange_store
        self.user_agent = user_agent
        self._pkce_manager = pkce_manager or PKCEManager()

    def build_authorization_url(
        self,
        code_challenge: str,
        state: str,
        screen_hint: str | None = None,
        extra_params: dict[str, str] | None = None,
    ) -> str:
        """Build the authorize endpoint URL. No side effects."""
        request = AuthorizationRequest(
            authorization_endpoint=self.config.authorize_endpoint,
            client_id=self.config.client_id,
            redirect_uri=self.config.redirect_uri,
            code_challenge=code_challenge,
            state=state,
            scope=self.config.scope,
            screen_hint=screen_hint,
            extra_params=tuple((extra_params or {}).items()),
        )
        return request.build_authorization_url()

    def build_logout_url(self) -> str:
        request = LogoutRequest(
            logout_endpoint=self.config.logout_endpoint,
            client_id=self.config.client_id,
            logout_uri=self.config.post_logout_redirect_uri,
        )
        return request.build_logout_url()

    async def start_authorization_flow(
        self,
        screen_hint: str | None = None,
        redirect_url: str | None = None,
        embed_verifier: bool = False,
    ) -> str:
        """Start an authorization flow.

        Generates PKCE parameters and state, stores them in the exchange
        store, then builds the URL the user agent should navigate to.

        Args:
            screen_hint: Optional hosted UI hint such as ``"signup"``
            redirect_url: Post-login redirect target, embedded in the state
                when ``embed_verifier`` is set
            embed_verifier: Wrap the verifier and redirect target into the
                state for backends that complete the exchange themselves

        Returns:
            The authorization URL

        Raises:
            AuthorizationError: If the flow could not be prepared
        """
        try:
            pkce_params = self._pkce_manager.generate_parameters()
            if embed_verifier:
                state = generate_state(pkce_params.code_verifier, redirect_url)
            else:
                state = generate_state()
            await self.exchange_store.store(pkce_params.code_verifier, state)
        except StorageError as e:
            raise AuthorizationError(f"Could not store PKCE exchange data: {e}") from e
        except Exception as e:
            raise AuthorizationError(f"Failed to start authorization flow: {e}") from e

        url = self.build_authorization_url(
            pkce_params.code_challenge, state, screen_hint=screen_hint
        )
        logger.info(f"Generated authorization URL for client {self.config.client_id}")
        return url

    async def interpret_callback(self, callback_url: str) -> CallbackOutcome:
        """Classify the provider's redirect back to the application.

        Decision order: provider error, missing code, missing stored
        exchange, state mismatch, authorized. Whatever the outcome, the
        stored exchange is cleared and the callback parameters are stripped
        from the user agent's visible location.

        Args:
            callback_url: Full redirect URL received from the provider

        Returns:
            CallbackOutcome: The classified callback
        """
        params = parse_callback_params(callback_url)
        try:
            return await self._classify(params)
        finally:
            await self.exchange_store.clear()
            if self.user_agent is not None:
                self.user_agent.replace_location(strip_callback_params(callback_url))

    async def _classify(self, params: CallbackParams) -> CallbackOutcome:
        if params.error:
            category, message = describe_provider_error(
                params.error, params.error_description
            )
            if category is ErrorCategory.USER_DECLINED:
                logger.info("User declined the authorization request")
            else:
                logger.warning(
                    f"Provider returned error: {params.error} - "
                    f"{params.error_description or 'no description'}"
                )
            return ProviderError(
                code=params.error,
                description=params.error_description,
                category=category,
                message=message,
            )

        if not params.code:
            logger.warning("Authorization callback missing both code and error")
            return MissingCode()

        pending = await self.exchange_store.retrieve()
        if pending is None:
            logger.warning("No stored PKCE exchange data - session expired or forged")
            return SessionExpired()

        if not states_match(pending.state, params.state):
            logger.warning("State parameter mismatch - possible CSRF attack")
            return StateMismatch()

        embedded = decode_state(pending.state) or {}
        redirect_url = embedded.get("redirect_url")
        return Authorized(
            code=params.code,
            code_verifier=pending.code_verifier,
            redirect_url=redirect_url if isinstance(redirect_url, str) else None,
        )
