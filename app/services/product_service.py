"""
Product catalog: simple, kit and dynamic products
"""

import logging
import math
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import NotFoundError, ValidationError
from app.core.tenant import TenantContext
from app.models.product import Product, KitItem, DynamicItem
from app.schemas.product import ProductCreate, ProductUpdate, KitItemIn, DynamicItemIn
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


def kit_stock(items: List[KitItem]) -> int:
    """How many complete kits the component stock can assemble"""
    if not items:
        return 0
    available = []
    for item in items:
        component = item.component
        stock = component.stock if component is not None and not component.is_deleted else 0
        available.append(math.floor((stock or 0) / (item.quantity or 1)))
    return min(available)


def kit_cost(items: List[KitItem]) -> Decimal:
    total = Decimal("0")
    for item in items:
        component = item.component
        if component is None or component.is_deleted:
            continue
        total += Decimal(component.cost_price or 0) * (item.quantity or 1)
    return total


def dynamic_stock(items: List[DynamicItem]) -> int:
    return sum(
        (item.component.stock or 0)
        for item in items
        if item.component is not None and not item.component.is_deleted
    )


def dynamic_cost(items: List[DynamicItem]) -> Decimal:
    """Stock-weighted average cost of the interchangeable components"""
    total_value = Decimal("0")
    total_stock = 0
    for item in items:
        component = item.component
        if component is None or component.is_deleted:
            continue
        stock = component.stock or 0
        total_value += Decimal(component.cost_price or 0) * stock
        total_stock += stock
    if total_stock == 0:
        return Decimal("0")
    return total_value / total_stock


def deleted_sku(sku: str) -> str:
    return f"{sku}_deleted_{int(utcnow().timestamp() * 1000)}"


class ProductService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _query(self, ctx: TenantContext):
        return (
            select(Product)
            .options(
                selectinload(Product.kit_items).selectinload(KitItem.component),
                selectinload(Product.dynamic_items).selectinload(DynamicItem.component),
            )
            .where(Product.company_id == ctx.company_id, Product.is_deleted.is_(False))
            .execution_options(populate_existing=True)
        )

    async def list(self, ctx: TenantContext, skip: int = 0, limit: int = 100) -> List[Product]:
        result = await self.db.execute(
            self._query(ctx).order_by(Product.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_sku(self, ctx: TenantContext, sku: str) -> Product:
        result = await self.db.execute(self._query(ctx).where(Product.sku == sku))
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def get_by_id(self, ctx: TenantContext, product_id: str) -> Product:
        result = await self.db.execute(self._query(ctx).where(Product.id == product_id))
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def available_stock(self, product: Product) -> int:
        if product.product_type == "kit":
            return kit_stock(product.kit_items)
        if product.product_type == "dynamic":
            return dynamic_stock(product.dynamic_items)
        return product.stock or 0

    def describe(self, product: Product) -> Dict[str, Any]:
        """Response payload with derived stock and cost for kits and dynamic products"""
        stock = product.stock or 0
        cost_price = Decimal(product.cost_price or 0)
        components = []

        if product.product_type == "kit":
            stock = kit_stock(product.kit_items)
            cost_price = kit_cost(product.kit_items)
            items = [(item.component, item.quantity) for item in product.kit_items]
        elif product.product_type == "dynamic":
            stock = dynamic_stock(product.dynamic_items)
            cost_price = dynamic_cost(product.dynamic_items)
            items = [(item.component, 1) for item in product.dynamic_items]
        else:
            items = []

        for component, quantity in items:
            if component is None:
                continue
            components.append({
                "component_id": component.id,
                "component_sku": component.sku,
                "name": component.name,
                "quantity": quantity or 1,
                "stock": component.stock or 0,
                "cost_price": Decimal(component.cost_price or 0),
            })

        return {
            "id": product.id,
            "sku": product.sku,
            "name": product.name,
            "product_type": product.product_type,
            "description": product.description,
            "brand": product.brand,
            "category": product.category,
            "barcode": product.barcode,
            "sale_price": Decimal(product.sale_price or 0),
            "cost_price": cost_price,
            "stock": stock,
            "image_url": product.image_url,
            "is_active": product.is_active,
            "created_at": product.created_at,
            "components": components,
        }

    async def _sku_in_use(self, ctx: TenantContext, sku: str) -> bool:
        result = await self.db.execute(
            select(Product.id).where(Product.company_id == ctx.company_id, Product.sku == sku)
        )
        return result.first() is not None

    async def _resolve_components(self, ctx: TenantContext, skus: List[str], own_sku: str) -> Dict[str, Product]:
        if own_sku in skus:
            raise ValidationError("A product cannot be its own component")
        result = await self.db.execute(
            select(Product).where(
                Product.company_id == ctx.company_id,
                Product.sku.in_(skus),
                Product.is_deleted.is_(False),
            )
        )
        found = {product.sku: product for product in result.scalars().all()}
        missing = [sku for sku in skus if sku not in found]
        if missing:
            raise NotFoundError(f"Component SKU not found: {', '.join(missing)}")
        return found

    async def _set_kit_items(self, ctx: TenantContext, product: Product, items: List[KitItemIn]) -> None:
        components = await self._resolve_components(ctx, [item.component_sku for item in items], product.sku)
        product.kit_items = [
            KitItem(component_id=components[item.component_sku].id, quantity=item.quantity)
            for item in items
        ]

    async def _set_dynamic_items(self, ctx: TenantContext, product: Product, items: List[DynamicItemIn]) -> None:
        components = await self._resolve_components(ctx, [item.component_sku for item in items], product.sku)
        product.dynamic_items = [
            DynamicItem(component_id=components[item.component_sku].id)
            for item in items
        ]

    async def create(self, ctx: TenantContext, product_in: ProductCreate) -> Product:
        if await self._sku_in_use(ctx, product_in.sku):
            raise ValidationError(f'SKU "{product_in.sku}" already exists')

        data = product_in.model_dump(exclude={"kit_items", "dynamic_items"})
        product = Product(company_id=ctx.company_id, **data)
        product.kit_items = []
        product.dynamic_items = []
        if product_in.product_type == "kit":
            await self._set_kit_items(ctx, product, product_in.kit_items)
        elif product_in.product_type == "dynamic":
            await self._set_dynamic_items(ctx, product, product_in.dynamic_items)

        self.db.add(product)
        await self.db.commit()
        logger.info(f"Created {product.product_type} product {product.sku} for company {ctx.company_id}")
        return await self.get_by_id(ctx, product.id)

    async def update(self, ctx: TenantContext, sku: str, product_in: ProductUpdate) -> Product:
        product = await self.get_by_sku(ctx, sku)
        update_data = product_in.model_dump(exclude_unset=True, exclude={"kit_items", "dynamic_items"})
        for field, value in update_data.items():
            setattr(product, field, value)

        if product_in.kit_items is not None:
            if product.product_type != "kit":
                raise ValidationError("Only kits have kit items")
            if not product_in.kit_items:
                raise ValidationError("A kit needs at least one component")
            await self._set_kit_items(ctx, product, product_in.kit_items)
        if product_in.dynamic_items is not None:
            if product.product_type != "dynamic":
                raise ValidationError("Only dynamic products have dynamic items")
            if not product_in.dynamic_items:
                raise ValidationError("A dynamic product needs at least one component")
            await self._set_dynamic_items(ctx, product, product_in.dynamic_items)

        await self.db.commit()
        return await self.get_by_id(ctx, product.id)

    async def set_status(self, ctx: TenantContext, product_id: str, is_active: bool) -> Product:
        product = await self.get_by_id(ctx, product_id)
        product.is_active = is_active
        await self.db.commit()
        return product

    async def set_image_url(self, ctx: TenantContext, product_id: str, image_url: str) -> Product:
        product = await self.get_by_id(ctx, product_id)
        product.image_url = image_url
        await self.db.commit()
        return product

    async def _parents_using(self, ctx: TenantContext, product: Product, item_model, parent_column) -> List[str]:
        """Names of live kits or dynamic products listing the product as a component"""
        result = await self.db.execute(
            select(Product.name)
            .join(item_model, parent_column == Product.id)
            .where(
                item_model.component_id == product.id,
                Product.company_id == ctx.company_id,
                Product.is_deleted.is_(False),
            )
            .distinct()
            .limit(5)
        )
        return list(result.scalars().all())

    async def deletion_blocker(self, ctx: TenantContext, product: Product) -> Optional[str]:
        """Reason the product cannot be deleted, or None"""
        if (product.stock or 0) > 0:
            return f"Product still has {product.stock} units in stock; zero the stock before deleting it"

        kits = await self._parents_using(ctx, product, KitItem, KitItem.kit_id)
        if kits:
            return f"Product is a component of these kits: {', '.join(kits)}; delete the kits first"

        dynamics = await self._parents_using(ctx, product, DynamicItem, DynamicItem.dynamic_id)
        if dynamics:
            return f"Product is a component of these dynamic products: {', '.join(dynamics)}; delete them first"
        return None

    def _soft_delete(self, product: Product) -> None:
        # Rename so the original SKU is immediately reusable
        product.sku = deleted_sku(product.sku)
        product.is_deleted = True
        product.is_active = False
        product.deleted_at = utcnow()

    async def delete(self, ctx: TenantContext, sku: str) -> None:
        product = await self.get_by_sku(ctx, sku)
        reason = await self.deletion_blocker(ctx, product)
        if reason:
            raise ValidationError(reason)
        self._soft_delete(product)
        await self.db.commit()
        logger.info(f"Deleted product {sku} of company {ctx.company_id}")

    async def bulk_delete(self, ctx: TenantContext, skus: List[str]) -> Tuple[List[str], List[str]]:
        deleted: List[str] = []
        errors: List[str] = []
        for sku in skus:
            try:
                product = await self.get_by_sku(ctx, sku)
            except NotFoundError:
                errors.append(f"{sku}: product not found")
                continue
            reason = await self.deletion_blocker(ctx, product)
            if reason:
                errors.append(f"{sku}: {reason}")
                continue
            self._soft_delete(product)
            deleted.append(sku)
        await self.db.commit()
        return deleted, errors
