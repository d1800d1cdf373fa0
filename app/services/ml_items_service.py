"""
Mercado Livre item proxy and promotions lookup
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import MercadoLivreError, MLErrorKind
from app.core.tenant import TenantContext
from app.services.ml_client import MercadoLivreClient
from app.services.ml_integration_service import MercadoLivreIntegrationService

logger = logging.getLogger(__name__)

PROMOTION_SOURCES = {
    "deals": "/deals/search",
    "campaigns": "/campaigns/search",
    "promotions_packs": "/promotions_packs/search",
}
MAX_PROMOTED_ITEMS = 50


def discount_percentage(base_price: Optional[Any], sale_price: Optional[Any]) -> int:
    if not base_price or not sale_price:
        return 0
    base = Decimal(str(base_price))
    sale = Decimal(str(sale_price))
    if base <= sale:
        return 0
    return int(((base - sale) / base * 100).quantize(Decimal("1")))


class MercadoLivreItemsService:
    def __init__(self, db: AsyncSession, http_client=None):
        self.db = db
        self.http_client = http_client
        self.integrations = MercadoLivreIntegrationService(db)

    async def _client(self, ctx: TenantContext) -> MercadoLivreClient:
        integration = await self.integrations.get_active_integration(ctx)
        return MercadoLivreClient(self.db, integration, http_client=self.http_client)

    async def get_item(self, ctx: TenantContext, item_id: str) -> Dict[str, Any]:
        async with await self._client(ctx) as client:
            return await client.get_json(f"/items/{item_id}")

    async def update_item(self, ctx: TenantContext, item_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with await self._client(ctx) as client:
            result = await client.put_json(f"/items/{item_id}", payload)
        logger.info(f"Updated Mercado Livre item {item_id} fields: {', '.join(sorted(payload))}")
        return result

    async def get_description(self, ctx: TenantContext, item_id: str) -> Dict[str, Any]:
        async with await self._client(ctx) as client:
            return await client.get_json(f"/items/{item_id}/description")

    async def update_description(self, ctx: TenantContext, item_id: str, plain_text: str) -> Dict[str, Any]:
        async with await self._client(ctx) as client:
            return await client.put_json(f"/items/{item_id}/description", {"plain_text": plain_text})

    async def get_variation(self, ctx: TenantContext, item_id: str, variation_id: str) -> Dict[str, Any]:
        async with await self._client(ctx) as client:
            return await client.get_json(f"/items/{item_id}/variations/{variation_id}")

    async def update_variation(
        self, ctx: TenantContext, item_id: str, variation_id: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        async with await self._client(ctx) as client:
            return await client.put_json(f"/items/{item_id}/variations/{variation_id}", payload)

    async def list_promotions(self, ctx: TenantContext) -> List[Dict[str, Any]]:
        """Deals, campaigns and promotion packs of every connected store, plus discounted items"""
        promotions: List[Dict[str, Any]] = []

        for integration in await self.integrations.list_integrations(ctx):
            if not integration.is_usable() or not integration.access_token:
                continue
            store_name = integration.nickname or "Unnamed store"
            seller_id = integration.ml_user_id

            async with MercadoLivreClient(self.db, integration, http_client=self.http_client) as client:
                for source, path in PROMOTION_SOURCES.items():
                    try:
                        data = await client.get_json(path, {"seller_id": seller_id})
                    except MercadoLivreError as e:
                        logger.warning(f"Promotion source {source} unavailable for seller {seller_id}: {e.message}")
                        continue
                    results = data.get("results") or data.get(source) or []
                    for entry in results:
                        promotions.append({**entry, "store_name": store_name, "seller_id": seller_id, "source": source})

                promotions.extend(await self._discounted_items(client, seller_id, store_name))

        promotions.sort(key=lambda promotion: promotion.get("date_from") or "", reverse=True)
        return promotions

    async def _discounted_items(
        self, client: MercadoLivreClient, seller_id: str, store_name: str
    ) -> List[Dict[str, Any]]:
        try:
            search = await client.get_json(
                f"/users/{seller_id}/items/search", {"status": "active", "has_promotions": "true"}
            )
            items = await client.fetch_items((search.get("results") or [])[:MAX_PROMOTED_ITEMS])
        except MercadoLivreError as e:
            logger.warning(f"Could not load promoted items of seller {seller_id}: {e.message}")
            return []

        entries = []
        for item in items:
            sale_price = item.get("sale_price") or item.get("price")
            base_price = item.get("original_price") or item.get("base_price") or item.get("price")
            entries.append({
                "id": (item.get("deal_ids") or [f"promo-{item['id']}"])[0],
                "name": item.get("title"),
                "date_from": item.get("start_time") or item.get("date_created"),
                "date_to": item.get("stop_time"),
                "discount": discount_percentage(base_price, sale_price),
                "status": "active" if item.get("status") == "active" else "finished",
                "deal_type": "item_promotion",
                "store_name": store_name,
                "seller_id": seller_id,
                "source": "items_with_promo",
                "item_id": item["id"],
                "price": sale_price,
                "original_price": base_price,
                "thumbnail": item.get("thumbnail"),
            })
        return entries

    async def get_promotion(self, ctx: TenantContext, promotion_id: str) -> Dict[str, Any]:
        async with await self._client(ctx) as client:
            return await client.get_json(f"/deals/{promotion_id}")

    async def push_stock(
        self, ctx: TenantContext, integration_id: str, listing_id: str, variation_id: Optional[str], quantity: int
    ) -> None:
        integration = await self.integrations.get_integration(ctx, integration_id)
        if integration.is_expired():
            raise MercadoLivreError(MLErrorKind.INTEGRATION_EXPIRED, "Integration validity window has lapsed")
        path = f"/items/{listing_id}"
        if variation_id:
            path = f"{path}/variations/{variation_id}"
        async with MercadoLivreClient(self.db, integration, http_client=self.http_client) as client:
            await client.put_json(path, {"available_quantity": quantity})
        logger.info(f"Pushed stock {quantity} to Mercado Livre {path}")
