from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.analytics import SalesImportRequest, ProductSalesResponse
from app.services.product_analytics_service import ProductAnalyticsService

router = APIRouter()


@router.post("/sales-import")
async def import_sales(
    request: SalesImportRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Replace the sales figures of one month (YYYY-MM)"""
    imported = await ProductAnalyticsService(db).import_sales(ctx, request.month_year, request.rows)
    return {"success": True, "month_year": request.month_year, "imported": imported}


@router.get("/sales", response_model=List[ProductSalesResponse])
async def get_product_sales(
    period: str = Query("30D", description="30D, 60D, 90D, 3M, 6M or 12M"),
    month_year: Optional[str] = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="Single month, YYYY-MM"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Sales per product. Kit sales are spread over the kit's components by cost share;
    kits without component cost stay on their own row flagged `unallocated`.
    """
    lines = await ProductAnalyticsService(db).get_product_sales(ctx, period=period, month_year=month_year)
    return [
        ProductSalesResponse(
            sku=line.sku,
            name=line.name,
            units=float(line.units),
            revenue=round(float(line.revenue), 2),
            avg_price=round(float(line.avg_price), 2),
            not_found=line.not_found,
            unallocated=line.unallocated,
        )
        for line in lines
    ]
