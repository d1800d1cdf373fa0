"""
Mercado Livre integration lifecycle: connection links, OAuth completion,
listing views and disconnect
"""

import base64
import binascii
import json
import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import MercadoLivreError, MLErrorKind
from app.core.tenant import TenantContext, resolve_company_id
from app.crud.ml_integration import ml_integration_crud
from app.models.ml_connection_token import MLConnectionToken
from app.models.ml_integration import MLIntegration
from app.models.ml_listing import MLListing
from app.models.product_listing_mapping import ProductListingMapping
from app.services.ml_auth_service import MercadoLivreAuthService
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


def encode_state(payload: Dict[str, Any]) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_state(state: str) -> Dict[str, Any]:
    try:
        padded = state + "=" * (-len(state) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeError) as e:
        raise MercadoLivreError(MLErrorKind.INVALID_STATE, "Invalid OAuth state") from e
    if not isinstance(payload, dict) or not payload.get("company_id") or not payload.get("user_id"):
        raise MercadoLivreError(MLErrorKind.INVALID_STATE, "Invalid OAuth state")
    return payload


class MercadoLivreIntegrationService:
    def __init__(self, db: AsyncSession, auth_service: Optional[MercadoLivreAuthService] = None):
        self.db = db
        self.auth_service = auth_service or MercadoLivreAuthService(db)

    def build_authorization_url(self, company_id: str, user_id: str, from_token: bool = False) -> str:
        state = encode_state({
            "company_id": company_id,
            "user_id": user_id,
            "timestamp": int(utcnow().timestamp() * 1000),
            "from_token": from_token,
        })
        return self.auth_service.get_authorization_url(state)

    async def create_connection_link(self, ctx: TenantContext) -> MLConnectionToken:
        """Issue a one-hour, single-use token that starts OAuth without a session"""
        connection_token = MLConnectionToken(
            token=uuid.uuid4().hex,
            company_id=ctx.company_id,
            user_id=ctx.user_id,
            expires_at=utcnow() + timedelta(minutes=settings.ML_CONNECTION_TOKEN_TTL_MINUTES),
            used=False,
        )
        self.db.add(connection_token)
        await self.db.commit()
        await self.db.refresh(connection_token)
        logger.info(f"Created Mercado Livre connection link for company {ctx.company_id}")
        return connection_token

    async def consume_connection_token(self, token: str) -> str:
        """
        Mark the token used and return the authorization URL.
        The conditional update makes consumption atomic: only one caller can flip `used`.
        """
        now = utcnow()
        result = await self.db.execute(
            update(MLConnectionToken)
            .where(
                MLConnectionToken.token == token,
                MLConnectionToken.used.is_(False),
                MLConnectionToken.expires_at > now,
            )
            .values(used=True, used_at=now)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            logger.warning("Rejected invalid, used or expired connection token")
            raise MercadoLivreError(MLErrorKind.INVALID_CONNECTION_TOKEN, "Invalid or expired connection link")
        await self.db.commit()

        row = (await self.db.execute(
            select(MLConnectionToken.company_id, MLConnectionToken.user_id).where(MLConnectionToken.token == token)
        )).one()
        return self.build_authorization_url(row.company_id, row.user_id, from_token=True)

    async def finish_oauth(self, ctx: TenantContext, code: str, state: str) -> MLIntegration:
        payload = decode_state(state)
        if str(payload["user_id"]) != ctx.user_id and not payload.get("from_token"):
            raise MercadoLivreError(MLErrorKind.INVALID_STATE_USER, "OAuth state belongs to another user")

        company_id = str(payload["company_id"])
        if not await resolve_company_id(self.db, ctx.user_id, company_id):
            raise MercadoLivreError(MLErrorKind.INVALID_USER_COMPANY, "User does not belong to the state's company")

        tokens = await self.auth_service.exchange_code_for_tokens(code)
        profile = await self.auth_service.get_user_profile(tokens["access_token"])

        ml_user_id = str(profile.get("id") or tokens.get("user_id") or "")
        if not ml_user_id:
            raise MercadoLivreError(MLErrorKind.USER_FETCH_FAILED, "Mercado Livre profile has no id")

        now = utcnow()
        integration = await ml_integration_crud.get_by_seller(self.db, company_id, ml_user_id)
        if integration is None:
            integration = MLIntegration(company_id=company_id, ml_user_id=ml_user_id)
            self.db.add(integration)

        integration.user_id = ctx.user_id
        integration.nickname = profile.get("nickname") or integration.nickname
        integration.site_id = profile.get("site_id") or "MLB"
        integration.access_token = tokens["access_token"]
        integration.refresh_token = tokens.get("refresh_token")
        integration.access_token_expires_at = tokens["expires_at"]
        integration.status = "active"
        integration.connected_at = now
        integration.expires_at = now + timedelta(days=settings.ML_INTEGRATION_VALIDITY_DAYS)
        await self.db.commit()
        await self.db.refresh(integration)

        logger.info(f"Connected Mercado Livre seller {ml_user_id} to company {company_id}")
        return integration

    async def list_integrations(self, ctx: TenantContext) -> List[MLIntegration]:
        return await ml_integration_crud.list_for_company(self.db, ctx.company_id)

    async def get_integration(self, ctx: TenantContext, integration_id: str) -> MLIntegration:
        integration = await ml_integration_crud.get(self.db, ctx.company_id, integration_id)
        if not integration:
            raise MercadoLivreError(MLErrorKind.INTEGRATION_NOT_FOUND, "Integration not found")
        return integration

    async def get_active_integration(self, ctx: TenantContext) -> MLIntegration:
        """First integration of the company that is still inside its validity window"""
        for integration in await self.list_integrations(ctx):
            if integration.is_usable():
                return integration
        raise MercadoLivreError(MLErrorKind.INTEGRATION_NOT_CONNECTED, "Mercado Livre is not connected")

    async def list_listings(self, ctx: TenantContext, integration_id: str) -> List[Tuple[MLListing, Optional[str]]]:
        await self.get_integration(ctx, integration_id)
        rows = await ml_integration_crud.get_listings_with_mappings(self.db, ctx.company_id, integration_id)
        return [(row[0], row[1]) for row in rows]

    async def update_nickname(self, ctx: TenantContext, integration_id: str, nickname: str) -> MLIntegration:
        integration = await self.get_integration(ctx, integration_id)
        integration.nickname = nickname
        await self.db.commit()
        await self.db.refresh(integration)
        return integration

    async def disconnect(self, ctx: TenantContext, integration_id: str) -> None:
        """Purge the integration's mappings and listings, then the integration itself"""
        integration = await self.get_integration(ctx, integration_id)
        await self.db.execute(
            delete(ProductListingMapping).where(
                ProductListingMapping.company_id == ctx.company_id,
                ProductListingMapping.integration_id == integration.id,
            )
        )
        await self.db.execute(
            delete(MLListing).where(
                MLListing.company_id == ctx.company_id,
                MLListing.integration_id == integration.id,
            )
        )
        await self.db.delete(integration)
        await self.db.commit()
        logger.info(f"Disconnected Mercado Livre integration {integration_id} of company {ctx.company_id}")
