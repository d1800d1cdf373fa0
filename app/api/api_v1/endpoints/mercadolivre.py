"""
Mercado Livre integration endpoints
Handles the OAuth connection flow, integration management and listing sync
"""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.db.database import get_db
from app.core.config import settings
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.mercadolivre import (
    AnalyticsSummary, AuthorizationUrlResponse, ConnectionLinkResponse, FinishOAuthRequest,
    IntegrationResponse, ListingResponse, NicknameUpdate, SyncResult
)
from app.services.listing_sync_service import ListingSyncService
from app.services.ml_analytics_service import MLAnalyticsService
from app.services.ml_integration_service import MercadoLivreIntegrationService

logger = logging.getLogger(__name__)
router = APIRouter()


def _integration_response(integration) -> IntegrationResponse:
    return IntegrationResponse(
        id=integration.id,
        ml_user_id=integration.ml_user_id,
        nickname=integration.nickname,
        site_id=integration.site_id,
        status=integration.status,
        status_calc=integration.status_calc,
        days_remaining=integration.days_remaining,
        connected_at=integration.connected_at,
        expires_at=integration.expires_at,
    )


@router.post("/connection-link", response_model=ConnectionLinkResponse)
async def create_connection_link(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a single-use link, valid for one hour, that starts the Mercado Livre
    authorization without a logged-in session (e.g. opened on another device)
    """
    connection_token = await MercadoLivreIntegrationService(db).create_connection_link(ctx)
    return ConnectionLinkResponse(
        token=connection_token.token,
        url=f"{settings.BACKEND_URL}{settings.API_V1_STR}/integrations/mercadolivre/connect/{connection_token.token}",
        expires_at=connection_token.expires_at,
    )


@router.get("/connect/{token}")
async def connect_with_token(
    token: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Consume a connection link and redirect to Mercado Livre's authorization page (public)
    """
    url = await MercadoLivreIntegrationService(db).consume_connection_token(token)
    return RedirectResponse(url=url, status_code=307)


@router.get("/start", response_model=AuthorizationUrlResponse)
async def start_oauth(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Authorization URL for the current user and company"""
    service = MercadoLivreIntegrationService(db)
    return AuthorizationUrlResponse(url=service.build_authorization_url(ctx.company_id, ctx.user_id))


@router.post("/finish", response_model=IntegrationResponse)
async def finish_oauth(
    request: FinishOAuthRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Complete the OAuth flow with the code and state returned by Mercado Livre
    """
    integration = await MercadoLivreIntegrationService(db).finish_oauth(ctx, request.code, request.state)
    return _integration_response(integration)


@router.get("/", response_model=List[IntegrationResponse])
async def get_integrations(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Connected stores with their computed status and remaining validity days"""
    integrations = await MercadoLivreIntegrationService(db).list_integrations(ctx)
    return [_integration_response(integration) for integration in integrations]


@router.post("/sync-listings", response_model=SyncResult)
async def sync_listings(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Pull the active and paused listings of every connected store and upsert them
    """
    return await ListingSyncService(db).sync(ctx)


@router.get("/{integration_id}/listings", response_model=List[ListingResponse])
async def get_listings(
    integration_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    rows = await MercadoLivreIntegrationService(db).list_listings(ctx, integration_id)
    listings = []
    for listing, mapped_sku in rows:
        response = ListingResponse.model_validate(listing)
        response.mapped = mapped_sku is not None
        response.mapped_sku = mapped_sku
        listings.append(response)
    return listings


@router.get("/{integration_id}/summary", response_model=AnalyticsSummary)
async def get_sales_summary(
    integration_id: str,
    date_from: date = Query(..., alias="from", description="First day, YYYY-MM-DD"),
    date_to: date = Query(..., alias="to", description="Last day, YYYY-MM-DD"),
    mode: str = Query("gross", description="gross or net"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Daily revenue of paid orders in the merchant timezone, zero-filled.

    In **net** mode days where some order had no net figure use its gross amount
    and are flagged `approximated`.
    """
    summary = await MLAnalyticsService(db).get_summary(ctx, integration_id, date_from, date_to, mode)
    return summary.as_dict()


@router.patch("/{integration_id}/nickname", response_model=IntegrationResponse)
async def update_nickname(
    integration_id: str,
    request: NicknameUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    integration = await MercadoLivreIntegrationService(db).update_nickname(ctx, integration_id, request.nickname)
    return _integration_response(integration)


@router.delete("/{integration_id}")
async def disconnect_integration(
    integration_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Remove the store together with its listings and product mappings"""
    await MercadoLivreIntegrationService(db).disconnect(ctx, integration_id)
    return {"success": True}
