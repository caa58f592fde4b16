"""
Whiteboard OAuth utilities.

Performs the authorization-code exchange and the refresh-token grant against
the provider's token endpoint.
"""

from __future__ import annotations

import logging
from typing import Dict
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from app.core.config import OAuthSettings
from app.schemas.auth import AuthenticationResponse

logger = logging.getLogger(__name__)


class OAuthClientError(Exception):
    """Base class for failures talking to the OAuth provider."""


class OAuthRequestError(OAuthClientError):
    """Raised when the token endpoint cannot be reached or answers non-200."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OAuthResponseError(OAuthClientError):
    """Raised when the token endpoint returns an unusable body."""


class OAuthTokenExchangeError(OAuthClientError):
    """Raised when an authorization code cannot be exchanged."""


class OAuthTokenRefreshError(OAuthClientError):
    """Raised when the provider rejects or fails a refresh-token grant."""


class MiroOAuthClient:
    """Exchange authorization codes and refresh tokens with the whiteboard provider."""

    def __init__(
        self,
        settings: OAuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def build_installation_url(self) -> str:
        """Construct the consent URL users are sent to when re-authorizing."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "redirect_uri": self._settings.redirect_uri,
        }
        return f"{self._settings.authorize_uri}?{urlencode(params)}"

    async def _post(
        self, params: Dict[str, str], data: Dict[str, str]
    ) -> AuthenticationResponse:
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    self._settings.token_uri,
                    params=params,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as exc:
            raise OAuthRequestError(f"Failed to perform HTTP request: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            logger.error(
                "OAuth token endpoint rejected request",
                extra={"status_code": response.status_code},
            )
            raise OAuthRequestError(
                f"Unexpected HTTP status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return AuthenticationResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OAuthResponseError("Failed to decode token response") from exc

    async def exchange(self, code: str) -> AuthenticationResponse:
        """Exchange an authorization code for a token pair."""
        params = {
            "client_id": self._settings.client_id,
            "code": code,
            "redirect_uri": self._settings.redirect_uri,
        }
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": self._settings.redirect_uri,
        }
        try:
            return await self._post(params, data)
        except OAuthClientError as exc:
            raise OAuthTokenExchangeError(
                f"Failed to exchange authorization code for token: {exc}"
            ) from exc

    async def refresh(self, refresh_token: str) -> AuthenticationResponse:
        """Obtain a new token pair using a stored refresh token."""
        logger.info("Refreshing OAuth token")
        params = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
        }
        try:
            return await self._post(params, data)
        except OAuthClientError as exc:
            raise OAuthTokenRefreshError(f"Failed to refresh token: {exc}") from exc


__all__ = [
    "MiroOAuthClient",
    "OAuthClientError",
    "OAuthRequestError",
    "OAuthResponseError",
    "OAuthTokenExchangeError",
    "OAuthTokenRefreshError",
]
