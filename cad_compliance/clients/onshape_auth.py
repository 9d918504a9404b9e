"""
Onshape OAuth utilities.

These helpers build the consent redirect, exchange grant codes for tokens and
read the signed-in user's profile.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
import pydantic
from fastapi import status

from cad_compliance.core.config import OnshapeSettings
from cad_compliance.schemas.auth import CorrelationData, ProviderProfile, TokenGrant

logger = logging.getLogger(__name__)


class OAuthStateEncoder:
    """
    Carry correlation data through the provider redirect as an opaque string.

    The value is plain base64-wrapped JSON. It is a carrier only; nothing read
    back from it is trusted for authorization.
    """

    def encode(self, correlation: CorrelationData) -> str:
        serialized = correlation.model_dump_json(by_alias=True, exclude_none=True)
        return base64.urlsafe_b64encode(serialized.encode("utf-8")).decode("ascii")

    def decode(self, token: Optional[str]) -> Optional[CorrelationData]:
        """Return the carried data, or ``None`` when ``token`` is unusable."""
        if not token:
            return None
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
            payload = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError):
            return None
        if not isinstance(payload, dict):
            return None
        try:
            return CorrelationData.model_validate(payload)
        except pydantic.ValidationError:
            return None


class OAuthTokenExchangeError(Exception):
    """Raised when the token or user-info endpoint returns an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OnshapeOAuthClient:
    """Build Onshape authorization URLs and exchange authorization codes."""

    AUTHORIZE_PATH = "/oauth/authorize"
    TOKEN_PATH = "/oauth/token"
    USER_INFO_PATH = "/users/sessioninfo"

    def __init__(
        self,
        settings: OnshapeSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http = http_client

    @property
    def token_url(self) -> str:
        return f"{self._settings.oauth_base_url}{self.TOKEN_PATH}"

    @property
    def user_info_url(self) -> str:
        return f"{self._settings.api_base_url}{self.USER_INFO_PATH}"

    def build_authorization_url(self, state: str) -> str:
        """Construct the Onshape consent URL."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.callback_url),
            "scope": " ".join(self._settings.scopes),
            "state": state,
        }
        return f"{self._settings.oauth_base_url}{self.AUTHORIZE_PATH}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange a one-time grant code for an access/refresh token pair."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": str(self._settings.callback_url),
        }
        response = await self._send("POST", self.token_url, data=payload)
        if response.status_code != status.HTTP_200_OK:
            logger.warning("Token exchange rejected with status %s", response.status_code)
            raise OAuthTokenExchangeError(response.text, status_code=response.status_code)

        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, pydantic.ValidationError) as exc:
            raise OAuthTokenExchangeError(
                "Incomplete token payload returned from Onshape."
            ) from exc

    async def fetch_user_profile(self, access_token: str) -> ProviderProfile:
        """Read the authenticated user's profile from the user-info endpoint."""
        response = await self._send(
            "GET",
            self.user_info_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(response.text, status_code=response.status_code)
        try:
            return ProviderProfile.model_validate(response.json())
        except (ValueError, pydantic.ValidationError) as exc:
            raise OAuthTokenExchangeError("Unreadable profile returned from Onshape.") from exc

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            if self._http is not None:
                return await self._http.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=10.0) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("OAuth %s %s failed: %s", method, url, exc.__class__.__name__)
            raise OAuthTokenExchangeError(
                "Could not reach Onshape.", status_code=status.HTTP_502_BAD_GATEWAY
            ) from exc


__all__ = [
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "OnshapeOAuthClient",
]
