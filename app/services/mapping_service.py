"""
Product to Mercado Livre listing mappings
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import MercadoLivreError, NotFoundError, ValidationError
from app.core.tenant import TenantContext
from app.models.product import Product
from app.models.product_listing_mapping import ProductListingMapping
from app.schemas.mapping import ProductMappingCreate
from app.services.ml_integration_service import MercadoLivreIntegrationService
from app.services.ml_items_service import MercadoLivreItemsService
from app.services.product_service import ProductService

logger = logging.getLogger(__name__)


class ProductMappingService:
    def __init__(self, db: AsyncSession, http_client=None):
        self.db = db
        self.products = ProductService(db)
        self.integrations = MercadoLivreIntegrationService(db)
        self.items = MercadoLivreItemsService(db, http_client=http_client)

    async def list_for_product(self, ctx: TenantContext, product_ref: str) -> List[ProductListingMapping]:
        """Mappings of a product referenced by SKU or id"""
        result = await self.db.execute(
            select(ProductListingMapping)
            .join(Product, Product.id == ProductListingMapping.product_id)
            .where(
                ProductListingMapping.company_id == ctx.company_id,
                or_(Product.sku == product_ref, Product.id == product_ref),
            )
            .order_by(ProductListingMapping.created_at)
        )
        return list(result.scalars().all())

    async def find_existing(
        self, ctx: TenantContext, listing_id: str, variation_id: Optional[str]
    ) -> Optional[ProductListingMapping]:
        variation_clause = (
            ProductListingMapping.variation_id == variation_id
            if variation_id
            else ProductListingMapping.variation_id.is_(None)
        )
        result = await self.db.execute(
            select(ProductListingMapping).where(
                ProductListingMapping.company_id == ctx.company_id,
                ProductListingMapping.listing_id == listing_id,
                variation_clause,
            )
        )
        return result.scalars().first()

    async def create(self, ctx: TenantContext, mapping_in: ProductMappingCreate) -> Tuple[ProductListingMapping, bool]:
        """
        Map a product to a listing (or one of its variations) and push the product's stock.
        Returns the mapping and whether the stock push succeeded.
        """
        product = await self.products.get_by_sku(ctx, mapping_in.product_sku)
        await self.integrations.get_integration(ctx, mapping_in.integration_id)

        existing = await self.find_existing(ctx, mapping_in.listing_id, mapping_in.variation_id)
        if existing:
            raise ValidationError(
                f"This listing is already mapped to SKU {existing.product_sku}"
            )

        mapping = ProductListingMapping(
            company_id=ctx.company_id,
            product_id=product.id,
            product_sku=product.sku,
            integration_id=mapping_in.integration_id,
            listing_id=mapping_in.listing_id,
            variation_id=mapping_in.variation_id,
        )
        self.db.add(mapping)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.find_existing(ctx, mapping_in.listing_id, mapping_in.variation_id)
            mapped_sku = existing.product_sku if existing else "another product"
            logger.warning(f"Concurrent mapping of listing {mapping_in.listing_id} rejected")
            raise ValidationError(f"This listing is already mapped to SKU {mapped_sku}")
        await self.db.refresh(mapping)

        stock = await self.products.available_stock(product)
        try:
            await self.items.push_stock(
                ctx, mapping.integration_id, mapping.listing_id, mapping.variation_id, stock
            )
            stock_pushed = True
        except MercadoLivreError as e:
            logger.error(f"Mapping {mapping.id} saved but stock push failed: {e.kind.value} {e.message}")
            stock_pushed = False

        return mapping, stock_pushed

    async def delete(self, ctx: TenantContext, mapping_id: str) -> None:
        result = await self.db.execute(
            select(ProductListingMapping).where(
                ProductListingMapping.company_id == ctx.company_id,
                ProductListingMapping.id == mapping_id,
            )
        )
        mapping = result.scalar_one_or_none()
        if not mapping:
            raise NotFoundError("Mapping not found")
        await self.db.delete(mapping)
        await self.db.commit()
