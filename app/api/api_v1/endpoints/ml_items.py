"""
Mercado Livre item, variation and promotion endpoints
Requests go through the company's first connected store
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.mercadolivre import DescriptionUpdate, ItemUpdate
from app.services.ml_items_service import MercadoLivreItemsService

router = APIRouter()


@router.get("/items/{item_id}")
async def get_item(
    item_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    return await MercadoLivreItemsService(db).get_item(ctx, item_id)


@router.put("/items/{item_id}")
async def update_item(
    item_id: str,
    request: ItemUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Forward the given fields (price, title, available_quantity, ...) to Mercado Livre"""
    return await MercadoLivreItemsService(db).update_item(ctx, item_id, request.data)


@router.get("/items/{item_id}/description")
async def get_item_description(
    item_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    return await MercadoLivreItemsService(db).get_description(ctx, item_id)


@router.put("/items/{item_id}/description")
async def update_item_description(
    item_id: str,
    request: DescriptionUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    return await MercadoLivreItemsService(db).update_description(ctx, item_id, request.plain_text)


@router.get("/items/{item_id}/variations/{variation_id}")
async def get_item_variation(
    item_id: str,
    variation_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    return await MercadoLivreItemsService(db).get_variation(ctx, item_id, variation_id)


@router.put("/items/{item_id}/variations/{variation_id}")
async def update_item_variation(
    item_id: str,
    variation_id: str,
    request: ItemUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    return await MercadoLivreItemsService(db).update_variation(ctx, item_id, variation_id, request.data)


@router.get("/promotions")
async def get_promotions(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
) -> List[Dict[str, Any]]:
    """
    Deals, campaigns and promotion packs of the connected stores, plus listings
    currently sold below their original price with the discount percentage
    """
    return await MercadoLivreItemsService(db).list_promotions(ctx)


@router.get("/promotions/{promotion_id}")
async def get_promotion(
    promotion_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    return await MercadoLivreItemsService(db).get_promotion(ctx, promotion_id)
