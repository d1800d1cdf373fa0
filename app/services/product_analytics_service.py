"""
Product sales analytics with kit revenue allocation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import ValidationError
from app.core.tenant import TenantContext
from app.models.product import Product, KitItem
from app.models.sales_record import SalesRecord
from app.schemas.analytics import SalesRowIn

logger = logging.getLogger(__name__)

PERIOD_MONTHS = {"30D": 1, "60D": 2, "90D": 3, "3M": 3, "6M": 6, "12M": 12}


@dataclass(slots=True)
class ProductSales:
    sku: str
    name: str
    units: Decimal = Decimal("0")
    revenue: Decimal = Decimal("0")
    product_type: str = "simple"
    not_found: bool = False
    unallocated: bool = False

    @property
    def avg_price(self) -> Decimal:
        if self.units == 0:
            return Decimal("0")
        return self.revenue / self.units


@dataclass(slots=True)
class KitComponent:
    sku: str
    name: str
    quantity: int = 1
    cost_price: Optional[Decimal] = None
    found: bool = True


@dataclass(slots=True)
class KitDefinition:
    sku: str
    components: list[KitComponent] = field(default_factory=list)


def allocate_kit_sales(
    sales: Iterable[ProductSales], kits: dict[str, KitDefinition]
) -> list[ProductSales]:
    """
    Spread each kit's units and revenue over its components by cost share.

    Share of a component = cost_price * quantity / total kit cost. Components
    without cost get nothing. A kit whose total cost is zero keeps its own row,
    flagged as unallocated.
    """
    by_sku: dict[str, ProductSales] = {}
    for line in sales:
        by_sku[line.sku] = line

    allocated_kits: set[str] = set()
    for line in list(by_sku.values()):
        if line.product_type != "kit":
            continue
        kit = kits.get(line.sku)
        if not kit or not kit.components:
            continue

        weights = [(component, (component.cost_price or Decimal("0")) * component.quantity) for component in kit.components]
        total_cost = sum((weight for _, weight in weights), Decimal("0"))
        if total_cost == 0:
            logger.warning(f"Kit {line.sku} has no component cost, leaving its sales unallocated")
            line.unallocated = True
            continue

        for component, weight in weights:
            if weight == 0:
                continue
            share = weight / total_cost
            target = by_sku.get(component.sku)
            if target is None:
                target = ProductSales(sku=component.sku, name=component.name, not_found=not component.found)
                by_sku[component.sku] = target
            target.units += line.units * share
            target.revenue += line.revenue * share

        allocated_kits.add(line.sku)

    result = [line for sku, line in by_sku.items() if sku not in allocated_kits]
    result.sort(key=lambda line: line.revenue, reverse=True)
    return result


class ProductAnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def import_sales(self, ctx: TenantContext, month_year: str, rows: list[SalesRowIn]) -> int:
        """Replace the imported sales of one month"""
        await self.db.execute(
            delete(SalesRecord).where(
                SalesRecord.company_id == ctx.company_id, SalesRecord.month_year == month_year
            )
        )
        for row in rows:
            self.db.add(SalesRecord(
                company_id=ctx.company_id,
                month_year=month_year,
                sku=row.sku,
                name=row.name,
                units=row.units,
                revenue=row.revenue,
            ))
        await self.db.commit()
        logger.info(f"Imported {len(rows)} sales rows for {month_year} (company {ctx.company_id})")
        return len(rows)

    async def _months_for_period(self, ctx: TenantContext, period: str) -> list[str]:
        months = PERIOD_MONTHS.get(period)
        if months is None:
            raise ValidationError(f"Invalid period '{period}', expected one of: {', '.join(PERIOD_MONTHS)}")
        result = await self.db.execute(
            select(SalesRecord.month_year)
            .where(SalesRecord.company_id == ctx.company_id)
            .group_by(SalesRecord.month_year)
            .order_by(SalesRecord.month_year.desc())
            .limit(months)
        )
        return list(result.scalars().all())

    async def _load_kits(self, ctx: TenantContext, kit_skus: list[str]) -> dict[str, KitDefinition]:
        if not kit_skus:
            return {}
        result = await self.db.execute(
            select(Product)
            .options(selectinload(Product.kit_items).selectinload(KitItem.component))
            .where(
                Product.company_id == ctx.company_id,
                Product.sku.in_(kit_skus),
                Product.is_deleted.is_(False),
            )
        )
        kits = {}
        for kit in result.scalars().all():
            components = []
            for item in kit.kit_items:
                component = item.component
                alive = component is not None and not component.is_deleted
                components.append(KitComponent(
                    sku=component.sku if component is not None else "",
                    name=component.name if component is not None else "",
                    quantity=item.quantity or 1,
                    cost_price=component.cost_price if alive else None,
                    found=alive,
                ))
            kits[kit.sku] = KitDefinition(sku=kit.sku, components=components)
        return kits

    async def get_product_sales(
        self, ctx: TenantContext, period: str = "30D", month_year: Optional[str] = None
    ) -> list[ProductSales]:
        months = [month_year] if month_year else await self._months_for_period(ctx, period)
        if not months:
            return []

        result = await self.db.execute(
            select(
                SalesRecord.sku,
                func.max(SalesRecord.name).label("name"),
                func.sum(SalesRecord.units).label("units"),
                func.sum(SalesRecord.revenue).label("revenue"),
            )
            .where(SalesRecord.company_id == ctx.company_id, SalesRecord.month_year.in_(months))
            .group_by(SalesRecord.sku)
        )
        rows = result.all()
        if not rows:
            return []

        products_result = await self.db.execute(
            select(Product.sku, Product.name, Product.product_type).where(
                Product.company_id == ctx.company_id,
                Product.sku.in_([row.sku for row in rows]),
                Product.is_deleted.is_(False),
            )
        )
        products = {row.sku: row for row in products_result.all()}

        sales = []
        for row in rows:
            product = products.get(row.sku)
            sales.append(ProductSales(
                sku=row.sku,
                name=product.name if product else (row.name or row.sku),
                units=Decimal(row.units or 0),
                revenue=Decimal(str(row.revenue or 0)),
                product_type=product.product_type if product else "simple",
                not_found=product is None,
            ))

        kits = await self._load_kits(ctx, [line.sku for line in sales if line.product_type == "kit"])
        return allocate_kit_sales(sales, kits)
