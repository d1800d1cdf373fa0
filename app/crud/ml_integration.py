from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.crud.base import CRUDBase
from app.models.ml_integration import MLIntegration
from app.models.ml_listing import MLListing
from app.models.product_listing_mapping import ProductListingMapping


class CRUDMLIntegration(CRUDBase[MLIntegration, dict, dict]):

    async def list_for_company(self, db: AsyncSession, company_id: str) -> List[MLIntegration]:
        result = await db.execute(self._scoped(company_id).order_by(MLIntegration.connected_at.desc()))
        return list(result.scalars().all())

    async def get_by_seller(self, db: AsyncSession, company_id: str, ml_user_id: str) -> Optional[MLIntegration]:
        result = await db.execute(self._scoped(company_id).where(MLIntegration.ml_user_id == ml_user_id))
        return result.scalar_one_or_none()

    async def get_listings_with_mappings(self, db: AsyncSession, company_id: str, integration_id: str):
        """Rows of (listing, mapped sku or None); one row per listing"""
        mapped_sku = (
            select(ProductListingMapping.product_sku)
            .where(
                ProductListingMapping.company_id == company_id,
                ProductListingMapping.listing_id == MLListing.listing_id,
            )
            .limit(1)
            .scalar_subquery()
        )
        result = await db.execute(
            select(MLListing, mapped_sku.label("mapped_sku"))
            .where(MLListing.company_id == company_id, MLListing.integration_id == integration_id)
            .order_by(MLListing.title)
        )
        return result.all()


ml_integration_crud = CRUDMLIntegration(MLIntegration)
