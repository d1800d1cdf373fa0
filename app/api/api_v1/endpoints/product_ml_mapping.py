from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.mapping import ProductMappingCreate, ProductMappingResponse, ProductMappingCreateResponse
from app.services.mapping_service import ProductMappingService

router = APIRouter()


@router.post("/", response_model=ProductMappingCreateResponse, status_code=201)
async def create_mapping(
    mapping_in: ProductMappingCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Link a product to a Mercado Livre listing (or one of its variations)
    and push the product's available stock to it.

    The mapping is kept even when the stock push fails (`stock_pushed: false`).
    """
    mapping, stock_pushed = await ProductMappingService(db).create(ctx, mapping_in)
    response = ProductMappingCreateResponse.model_validate(mapping)
    response.stock_pushed = stock_pushed
    return response


@router.get("/{product_ref}", response_model=List[ProductMappingResponse])
async def get_product_mappings(
    product_ref: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Mappings of a product given its SKU or id"""
    return await ProductMappingService(db).list_for_product(ctx, product_ref)


@router.delete("/{mapping_id}")
async def delete_mapping(
    mapping_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    await ProductMappingService(db).delete(ctx, mapping_id)
    return {"success": True}
