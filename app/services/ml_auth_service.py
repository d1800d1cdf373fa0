"""
Mercado Livre Authentication Service
Handles the OAuth code exchange and the access/refresh token lifecycle of an integration
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import MercadoLivreError, MLErrorKind
from app.models.ml_integration import MLIntegration, STATUS_REAUTH_REQUIRED
from app.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

# Refresh slightly before the provider-reported expiry
TOKEN_EXPIRY_SLACK = timedelta(minutes=5)

# Provider answers meaning the refresh token itself is no longer accepted
REVOKED_REFRESH_STATUSES = (400, 401)


class MercadoLivreAuthService:
    def __init__(self, db: AsyncSession, http_client: Optional[httpx.AsyncClient] = None):
        self.db = db
        self.base_url = settings.ML_API_URL
        self.client_id = settings.ML_CLIENT_ID
        self.client_secret = settings.ML_CLIENT_SECRET
        self.redirect_uri = settings.ML_REDIRECT_URI
        self.http_client = http_client

    def get_authorization_url(self, state: str) -> str:
        """
        Generate authorization URL for OAuth flow
        """
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": state,
        }
        return f"{settings.ML_AUTH_URL}?{urlencode(params)}"

    async def _post_token(self, data: Dict[str, str]) -> httpx.Response:
        headers = {"Content-Type": "application/x-www-form-urlencoded", "Accept": "application/json"}
        if self.http_client is not None:
            return await self.http_client.post(f"{self.base_url}/oauth/token", data=data, headers=headers)
        async with httpx.AsyncClient(timeout=30.0) as client:
            return await client.post(f"{self.base_url}/oauth/token", data=data, headers=headers)

    def _require_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            logger.error("Mercado Livre client credentials are not configured")
            raise MercadoLivreError(MLErrorKind.CONFIG_INCOMPLETE, "Mercado Livre client credentials are not configured")

    async def exchange_code_for_tokens(self, authorization_code: str) -> Dict[str, Any]:
        """
        Exchange authorization code for access and refresh tokens
        """
        self._require_credentials()
        try:
            response = await self._post_token({
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": authorization_code,
                "redirect_uri": self.redirect_uri,
            })
        except httpx.HTTPError as e:
            logger.error(f"Error exchanging authorization code: {str(e)}")
            raise MercadoLivreError(MLErrorKind.TOKEN_EXCHANGE_FAILED, "Could not reach Mercado Livre") from e

        if response.status_code != 200:
            logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
            raise MercadoLivreError(
                MLErrorKind.TOKEN_EXCHANGE_FAILED, upstream_status=response.status_code
            )

        token_data = response.json()
        expires_in = int(token_data.get("expires_in") or 21600)
        return {
            "access_token": token_data.get("access_token"),
            "refresh_token": token_data.get("refresh_token"),
            "user_id": token_data.get("user_id"),
            "expires_in": expires_in,
            "expires_at": utcnow() + timedelta(seconds=expires_in),
        }

    async def get_user_profile(self, access_token: str) -> Dict[str, Any]:
        """
        Get the seller profile (`/users/me`) of an access token
        """
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            if self.http_client is not None:
                response = await self.http_client.get(f"{self.base_url}/users/me", headers=headers)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.get(f"{self.base_url}/users/me", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Error getting user profile: {str(e)}")
            raise MercadoLivreError(MLErrorKind.USER_FETCH_FAILED, "Could not reach Mercado Livre") from e

        if response.status_code != 200:
            logger.error(f"Failed to get user profile: {response.status_code} - {response.text}")
            raise MercadoLivreError(MLErrorKind.USER_FETCH_FAILED, upstream_status=response.status_code)
        return response.json()

    async def refresh_access_token(self, integration: MLIntegration) -> str:
        """
        Exchange the stored refresh token for a new pair and persist it.
        Returns the new access token.
        """
        self._require_credentials()
        if not integration.refresh_token:
            logger.error(f"Integration {integration.id} has no refresh token")
            await self._require_reauth(integration)
            raise MercadoLivreError(MLErrorKind.MISSING_REFRESH_TOKEN, "Integration has no refresh token, reconnect it")

        try:
            response = await self._post_token({
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": integration.refresh_token,
            })
        except httpx.HTTPError as e:
            logger.error(f"Error refreshing token for integration {integration.id}: {str(e)}")
            raise MercadoLivreError(MLErrorKind.REFRESH_FAILED, "Could not reach Mercado Livre") from e

        if response.status_code != 200:
            logger.error(f"Token refresh failed: {response.status_code} - {response.text}")
            if response.status_code in REVOKED_REFRESH_STATUSES:
                await self._require_reauth(integration)
            raise MercadoLivreError(
                MLErrorKind.REFRESH_FAILED,
                f"refresh_failed_{response.status_code}",
                upstream_status=response.status_code,
            )

        try:
            token_data = response.json()
        except ValueError as e:
            logger.error(f"Token refresh returned invalid JSON: {response.text}")
            raise MercadoLivreError(MLErrorKind.REFRESH_INVALID_JSON) from e

        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not access_token:
            logger.error(f"Token refresh response without access_token: {response.text}")
            raise MercadoLivreError(MLErrorKind.REFRESH_MISSING_ACCESS_TOKEN)

        expires_in = int(token_data.get("expires_in") or 21600)
        integration.access_token = access_token
        # The provider may or may not rotate the refresh token
        integration.refresh_token = token_data.get("refresh_token") or integration.refresh_token
        integration.access_token_expires_at = utcnow() + timedelta(seconds=expires_in)
        integration.updated_at = utcnow()
        await self.db.commit()

        logger.info(f"Refreshed Mercado Livre token for integration {integration.id}")
        return access_token

    async def _require_reauth(self, integration: MLIntegration) -> None:
        """Take the integration out of use until the seller connects it again"""
        integration.status = STATUS_REAUTH_REQUIRED
        integration.updated_at = utcnow()
        await self.db.commit()
        logger.warning(f"Integration {integration.id} needs to be reconnected")

    async def ensure_valid_token(self, integration: MLIntegration) -> str:
        """
        Ensure the integration has a usable access token, refresh if needed
        """
        if integration.is_expired():
            raise MercadoLivreError(
                MLErrorKind.INTEGRATION_EXPIRED, "Integration validity window has lapsed, reconnect it"
            )
        if integration.status == STATUS_REAUTH_REQUIRED:
            raise MercadoLivreError(MLErrorKind.REAUTH_REQUIRED, "Integration authorization was revoked, reconnect it")

        expires_at = integration.access_token_expires_at
        if not integration.access_token or (
            expires_at is not None and as_utc(expires_at) <= utcnow() + TOKEN_EXPIRY_SLACK
        ):
            return await self.refresh_access_token(integration)

        return integration.access_token
