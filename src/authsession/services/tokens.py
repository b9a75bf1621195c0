"""Token endpoint client.

Implements RFC 6749 token endpoint interactions with PKCE (RFC 7636): the
authorization code exchange and the refresh grant.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from authsession.models.errors import TokenExchangeError
from authsession.models.tokens import (
    RefreshTokenRequest,
    TokenRequest,
    TokenResponse,
    TokenSet,
)

logger = logging.getLogger(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class OAuth2TokenManager:
    """Performs code exchanges and refresh grants against a token endpoint.

    A failed code exchange is exceptional and raises ``TokenExchangeError``.
    A failed refresh is expected (the session simply ends) and returns None.

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749.
    Requests are never retried; a hung request fails with the client's
    timeout.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize the token manager.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def exchange_code(self, token_request: TokenRequest) -> TokenSet:
        """Exchange an authorization code for a token set.

        Implements RFC 6749 Section 4.1.3 - Access Token Request, including
        the PKCE code_verifier.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenSet: The issued tokens

        Raises:
            TokenExchangeError: On a non-success status, a transport failure
                or an unusable response body
        """
        form_data = token_request.to_form_data()
        logger.debug(
            f"Token request to {token_request.token_endpoint}: "
            f"grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=FORM_HEADERS,
            )
        except httpx.HTTPError as e:
            raise TokenExchangeError(
                f"HTTP error during token exchange: {e}", body=str(e)
            ) from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"Token exchange failed with {response.status_code}")
            raise TokenExchangeError(
                f"Token exchange failed: {response.status_code}",
                status=response.status_code,
                body=response.text,
            )

        token_response = self._parse_token_response(response)
        if token_response is None or not token_response.is_success():
            raise TokenExchangeError(
                "Invalid token response format",
                status=response.status_code,
                body=response.text,
            )

        logger.info("Token exchange successful")
        return token_response.to_token_set()

    async def refresh(self, refresh_request: RefreshTokenRequest) -> TokenSet | None:
        """Obtain a new token set with a refresh token.

        Implements RFC 6749 Section 6 - Refreshing an Access Token. When the
        provider does not rotate the refresh token, the one sent is carried
        forward into the new token set.

        Args:
            refresh_request: Refresh token request parameters

        Returns:
            TokenSet, or None if the refresh failed for any reason
        """
        form_data = refresh_request.to_form_data()
        logger.debug(
            f"Refresh request to {refresh_request.token_endpoint}: "
            f"client_id={form_data['client_id']}"
        )

        try:
            response = await self._http_client.post(
                refresh_request.token_endpoint,
                data=form_data,
                headers=FORM_HEADERS,
            )
        except httpx.HTTPError as e:
            logger.warning(f"HTTP error during token refresh: {e}")
            return None

        if not 200 <= response.status_code < 300:
            logger.warning(f"Token refresh failed with {response.status_code}")
            return None

        token_response = self._parse_token_response(response)
        if token_response is None or not token_response.is_success():
            logger.warning("Token refresh returned an unusable response")
            return None

        logger.info("Token refresh successful")
        return token_response.to_token_set(
            previous_refresh_token=refresh_request.refresh_token
        )

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse | None:
        """Parse a token endpoint body, or None if it is not a token response."""
        try:
            response_data = response.json()
        except ValueError as e:
            logger.warning(f"Token endpoint returned non-JSON body: {e}")
            return None

        if not isinstance(response_data, dict):
            return None

        try:
            return TokenResponse.model_validate(response_data)
        except ValidationError as e:
            logger.warning(f"Invalid token response format: {e.error_count()} errors")
            return None

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
