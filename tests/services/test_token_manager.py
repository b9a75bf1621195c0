"""Tests for token endpoint exchanges.

High-impact tests covering the token endpoint client:
- Successful authorization code to token exchange
- Exchange failures surfacing status and body
- Refresh grants returning None on any failure
- Form encoding and request validation
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from authsession.models.errors import TokenError, TokenExchangeError
from authsession.models.tokens import RefreshTokenRequest, TokenRequest
from authsession.services.tokens import OAuth2TokenManager


def mock_response(status_code: int, body=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    response.text = text
    return response


class TestTokenExchange:
    """Test authorization code to access token exchange."""

    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()
        self.token_request = TokenRequest(
            token_endpoint="https://auth.example.com/oauth2/token",
            code="auth-code-123",
            redirect_uri="https://myapp.com/callback",
            client_id="client-456",
            code_verifier="dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk",
        )

    async def test_successful_token_exchange_with_all_fields(self):
        """Test successful token exchange with complete response."""
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200,
            {
                "access_token": "access-token-xyz",
                "id_token": "id-token-xyz",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "refresh-token-abc",
            },
        )

        # Act
        tokens = await self.token_manager.exchange_code(self.token_request)

        # Assert
        assert tokens.access_token == "access-token-xyz"
        assert tokens.id_token == "id-token-xyz"
        assert tokens.refresh_token == "refresh-token-abc"
        assert tokens.token_type == "Bearer"
        assert tokens.expires_in == 3600
        assert tokens.expires_at is not None

        # Verify HTTP request was made correctly
        self.token_manager._http_client.post.assert_awaited_once()
        call_args = self.token_manager._http_client.post.call_args

        assert call_args[0][0] == "https://auth.example.com/oauth2/token"

        form_data = call_args[1]["data"]
        assert form_data["grant_type"] == "authorization_code"
        assert form_data["code"] == "auth-code-123"
        assert form_data["redirect_uri"] == "https://myapp.com/callback"
        assert form_data["client_id"] == "client-456"
        assert form_data["code_verifier"] == self.token_request.code_verifier

        headers = call_args[1]["headers"]
        assert headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert headers["Accept"] == "application/json"

    async def test_invalid_grant_raises_with_status_and_body(self):
        """Test non-2xx responses surface status and raw body."""
        # Arrange
        body = '{"error":"invalid_grant","error_description":"Code expired"}'
        self.token_manager._http_client.post.return_value = mock_response(
            400,
            {"error": "invalid_grant", "error_description": "Code expired"},
            text=body,
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code(self.token_request)

        assert exc_info.value.status == 400
        assert exc_info.value.body == body
        assert isinstance(exc_info.value, TokenError)

    async def test_transport_failure_raises_without_status(self):
        # Arrange
        self.token_manager._http_client.post.side_effect = httpx.ConnectError(
            "connection refused"
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code(self.token_request)

        assert exc_info.value.status is None
        assert "connection refused" in exc_info.value.body

    async def test_missing_access_token_in_success_response(self):
        """Test handling of malformed success response missing access_token."""
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200, {"token_type": "Bearer"}, text='{"token_type":"Bearer"}'
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError, match="Invalid token response"):
            await self.token_manager.exchange_code(self.token_request)

    async def test_non_json_success_body(self):
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200, ValueError("Expecting value"), text="<html>"
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code(self.token_request)

        assert exc_info.value.body == "<html>"


class TestTokenRefresh:
    """Test token refresh functionality."""

    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()
        self.refresh_request = RefreshTokenRequest(
            token_endpoint="https://auth.example.com/oauth2/token",
            refresh_token="refresh-token-abc",
            client_id="client-456",
        )

    async def test_successful_token_refresh_with_rotation(self):
        """Test successful token refresh."""
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200,
            {
                "access_token": "new-access-token-xyz",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "new-refresh-token-def",
            },
        )

        # Act
        tokens = await self.token_manager.refresh(self.refresh_request)

        # Assert
        assert tokens is not None
        assert tokens.access_token == "new-access-token-xyz"
        assert tokens.refresh_token == "new-refresh-token-def"

        call_args = self.token_manager._http_client.post.call_args
        assert call_args[1]["data"] == {
            "grant_type": "refresh_token",
            "client_id": "client-456",
            "refresh_token": "refresh-token-abc",
        }

    async def test_refresh_without_rotation_keeps_refresh_token(self):
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200, {"access_token": "new-access", "id_token": "new-id"}
        )

        # Act
        tokens = await self.token_manager.refresh(self.refresh_request)

        # Assert
        assert tokens is not None
        assert tokens.refresh_token == "refresh-token-abc"
        assert tokens.id_token == "new-id"

    async def test_rejected_refresh_returns_none(self):
        """Test handling of refresh token errors."""
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            400, {"error": "invalid_grant", "error_description": "Token revoked"}
        )

        # Act & Assert
        assert await self.token_manager.refresh(self.refresh_request) is None

    async def test_network_failure_returns_none(self):
        # Arrange
        self.token_manager._http_client.post.side_effect = httpx.ReadTimeout(
            "timed out"
        )

        # Act & Assert
        assert await self.token_manager.refresh(self.refresh_request) is None

    async def test_error_body_with_success_status_returns_none(self):
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200, {"error": "invalid_grant"}
        )

        # Act & Assert
        assert await self.token_manager.refresh(self.refresh_request) is None


class TestClientLifecycle:
    async def test_close_closes_http_client(self):
        # Arrange
        token_manager = OAuth2TokenManager(timeout=5.0)
        token_manager._http_client = AsyncMock()

        # Act
        await token_manager.close()

        # Assert
        token_manager._http_client.aclose.assert_awaited_once()
