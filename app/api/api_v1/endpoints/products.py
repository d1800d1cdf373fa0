from fastapi import APIRouter, Depends, File, UploadFile, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.product import (
    ProductCreate, ProductUpdate, ProductResponse, ToggleStatusRequest, BulkDeleteRequest, BulkDeleteResponse
)
from app.services.product_service import ProductService
from app.services.storage_service import ObjectStorage, get_storage

router = APIRouter()


@router.get("/", response_model=List[ProductResponse])
async def get_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Get all products; kits and dynamic products report derived stock and cost"""
    service = ProductService(db)
    products = await service.list(ctx, skip=skip, limit=limit)
    return [service.describe(product) for product in products]


@router.post("/", response_model=ProductResponse, status_code=201)
async def create_product(
    product_in: ProductCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a product.

    - **simple**: stock and cost are stored on the product
    - **kit**: needs `kit_items` (component SKU and quantity)
    - **dynamic**: needs `dynamic_items` (interchangeable component SKUs)
    """
    service = ProductService(db)
    return service.describe(await service.create(ctx, product_in))


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_products(
    request: BulkDeleteRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Delete several products; SKUs that cannot be deleted are reported in `errors`"""
    deleted, errors = await ProductService(db).bulk_delete(ctx, request.skus)
    return BulkDeleteResponse(deleted=deleted, errors=errors)


@router.get("/images/{key:path}")
async def get_product_image(key: str, storage: ObjectStorage = Depends(get_storage)):
    """Serve a stored product image (public)"""
    content, content_type = await storage.get(key)
    return Response(content=content, media_type=content_type)


@router.get("/by-id/{product_id}", response_model=ProductResponse)
async def get_product_by_id(
    product_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    service = ProductService(db)
    return service.describe(await service.get_by_id(ctx, product_id))


@router.patch("/{product_id}/toggle-status", response_model=ProductResponse)
async def toggle_product_status(
    product_id: str,
    request: ToggleStatusRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    service = ProductService(db)
    await service.set_status(ctx, product_id, request.is_active)
    return service.describe(await service.get_by_id(ctx, product_id))


@router.post("/{product_id}/image", response_model=ProductResponse)
async def upload_product_image(
    product_id: str,
    file: UploadFile = File(...),
    storage: ObjectStorage = Depends(get_storage),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Store an image for the product and save its URL"""
    service = ProductService(db)
    product = await service.get_by_id(ctx, product_id)

    key = storage.product_image_key(ctx.company_id, product.id, file.filename or "")
    await storage.put(key, await file.read())

    await service.set_image_url(ctx, product.id, storage.public_url(key))
    return service.describe(await service.get_by_id(ctx, product.id))


@router.get("/{sku}", response_model=ProductResponse)
async def get_product(
    sku: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    service = ProductService(db)
    return service.describe(await service.get_by_sku(ctx, sku))


@router.put("/{sku}", response_model=ProductResponse)
async def update_product(
    sku: str,
    product_in: ProductUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Update a product; kit or dynamic items are replaced when given"""
    service = ProductService(db)
    return service.describe(await service.update(ctx, sku, product_in))


@router.delete("/{sku}")
async def delete_product(
    sku: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a product.

    Refused while it has stock or is a component of a kit or dynamic product.
    The SKU becomes available again right away.
    """
    await ProductService(db).delete(ctx, sku)
    return {"success": True}
