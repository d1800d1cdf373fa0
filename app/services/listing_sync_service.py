"""
Listing sync: snapshot a company's Mercado Livre listings into ml_listings
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import MercadoLivreError
from app.core.tenant import TenantContext
from app.crud.ml_integration import ml_integration_crud
from app.models.ml_listing import MLListing
from app.services.ml_client import MercadoLivreClient
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

ITEM_ATTRIBUTES = ",".join([
    "id", "title", "price", "original_price", "base_price", "currency_id",
    "available_quantity", "sold_quantity", "status", "permalink", "thumbnail",
    "category_id", "listing_type_id", "condition", "seller_custom_field",
    "variations", "attributes",
])

CONFLICT_KEY = ["company_id", "integration_id", "listing_id"]

MUTABLE_FIELDS = [
    "title", "price", "original_price", "currency_id", "available_quantity",
    "sold_quantity", "status", "permalink", "thumbnail", "category_id",
    "category_name", "sku", "listing_type_id", "condition", "has_variations",
    "variations", "last_synced_at",
]


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def extract_sku(item: Dict[str, Any]) -> Optional[str]:
    """Seller SKU of an item: its own custom field, else the first variation's, else the SELLER_SKU attribute"""
    if item.get("seller_custom_field"):
        return item["seller_custom_field"]
    for variation in item.get("variations") or []:
        if variation.get("seller_custom_field"):
            return variation["seller_custom_field"]
    for attribute in item.get("attributes") or []:
        if attribute.get("id") == "SELLER_SKU" and attribute.get("value_name"):
            return attribute["value_name"]
    return None


def extract_original_price(item: Dict[str, Any]) -> Optional[Decimal]:
    original = _decimal(item.get("original_price"))
    if original is not None:
        return original
    price = _decimal(item.get("price"))
    base = _decimal(item.get("base_price"))
    if base is not None and price is not None and base > price:
        return base
    return None


def normalize_listing(item: Dict[str, Any], category_names: Dict[str, Optional[str]]) -> Dict[str, Any]:
    variations = item.get("variations") or []
    return {
        "listing_id": item["id"],
        "title": item.get("title"),
        "price": _decimal(item.get("price")),
        "original_price": extract_original_price(item),
        "currency_id": item.get("currency_id"),
        "available_quantity": item.get("available_quantity") or 0,
        "sold_quantity": item.get("sold_quantity") or 0,
        "status": item.get("status"),
        "permalink": item.get("permalink"),
        "thumbnail": item.get("thumbnail"),
        "category_id": item.get("category_id"),
        "category_name": category_names.get(item.get("category_id")),
        "sku": extract_sku(item),
        "listing_type_id": item.get("listing_type_id"),
        "condition": item.get("condition"),
        "has_variations": bool(variations),
        "variations": [
            {
                "id": str(variation.get("id")),
                "sku": variation.get("seller_custom_field"),
                "available_quantity": variation.get("available_quantity"),
                "price": variation.get("price"),
            }
            for variation in variations
        ] or None,
    }


class ListingSyncService:
    def __init__(self, db: AsyncSession, http_client=None):
        self.db = db
        self.http_client = http_client

    async def _category_names(
        self, client: MercadoLivreClient, items: List[Dict[str, Any]], cache: Dict[str, Optional[str]]
    ) -> Dict[str, Optional[str]]:
        for category_id in {item.get("category_id") for item in items if item.get("category_id")}:
            if category_id in cache:
                continue
            try:
                category = await client.get_json(f"/categories/{category_id}")
                cache[category_id] = category.get("name")
            except MercadoLivreError as e:
                logger.warning(f"Could not load category {category_id}: {e.message}")
                cache[category_id] = None
        return cache

    async def fetch_listings(self, client: MercadoLivreClient, seller_id: str) -> List[Dict[str, Any]]:
        item_ids = await client.paginate(f"/users/{seller_id}/items/search", {"status": "active,paused"})
        return await client.fetch_items(item_ids, attributes=ITEM_ATTRIBUTES)

    def _upsert_statement(self, values: Dict[str, Any]):
        dialect_name = self.db.get_bind().dialect.name
        insert = postgresql.insert if dialect_name == "postgresql" else sqlite.insert
        stmt = insert(MLListing).values(**values)
        set_ = {column: stmt.excluded[column] for column in MUTABLE_FIELDS}
        set_["updated_at"] = func.now()
        return stmt.on_conflict_do_update(index_elements=CONFLICT_KEY, set_=set_)

    async def upsert_listing(self, company_id: str, integration_id: str, listing: Dict[str, Any]) -> None:
        """Insert the listing or replace its mutable fields; key columns stay untouched"""
        values = {**listing, "company_id": company_id, "integration_id": integration_id}
        await self.db.execute(self._upsert_statement(values))

    async def sync(self, ctx: TenantContext) -> Dict[str, Any]:
        """
        Fetch the listings of every usable integration, then write them one by one.
        Each listing commits on its own; a failing one is logged and skipped.
        """
        integrations = await ml_integration_crud.list_for_company(self.db, ctx.company_id)

        fetched: List[Tuple[str, List[Dict[str, Any]]]] = []
        skipped: List[str] = []
        category_cache: Dict[str, Optional[str]] = {}

        for integration in integrations:
            if not integration.is_usable():
                logger.info(f"Skipping integration {integration.id} ({integration.status_calc})")
                skipped.append(integration.id)
                continue

            async with MercadoLivreClient(self.db, integration, http_client=self.http_client) as client:
                items = await self.fetch_listings(client, integration.ml_user_id)
                await self._category_names(client, items, category_cache)

            synced_at = utcnow()
            listings = []
            for item in items:
                listing = normalize_listing(item, category_cache)
                listing["last_synced_at"] = synced_at
                listings.append(listing)
            fetched.append((integration.id, listings))

        synced = 0
        failed = 0
        total = sum(len(listings) for _, listings in fetched)

        for integration_id, listings in fetched:
            for listing in listings:
                try:
                    await self.upsert_listing(ctx.company_id, integration_id, listing)
                    await self.db.commit()
                    synced += 1
                except Exception as e:
                    await self.db.rollback()
                    failed += 1
                    logger.error(f"Failed to upsert listing {listing.get('listing_id')}: {str(e)}")

        logger.info(f"Listing sync for company {ctx.company_id}: {synced}/{total} synced, {failed} failed")
        return {
            "success": failed == 0,
            "synced": synced,
            "failed": failed,
            "total": total,
            "skipped": skipped,
        }
