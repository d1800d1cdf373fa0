"""
Mercado Livre API client: authenticated requests with one refresh-and-retry,
offset/limit pagination and chunked item lookups
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import MercadoLivreError, MLErrorKind
from app.models.ml_integration import MLIntegration
from app.services.ml_auth_service import MercadoLivreAuthService

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


class MercadoLivreClient:
    def __init__(
        self,
        db: AsyncSession,
        integration: MLIntegration,
        auth_service: Optional[MercadoLivreAuthService] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.db = db
        self.integration = integration
        self.base_url = settings.ML_API_URL
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=30.0)
        self.auth_service = auth_service or MercadoLivreAuthService(db, http_client=self.http_client)

    async def _send(self, method: str, path: str, access_token: str, **kwargs) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {access_token}"
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        try:
            return await self.http_client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Mercado Livre {method} {path} failed: {str(e)}")
            raise MercadoLivreError(MLErrorKind.UPSTREAM_ERROR, "Could not reach Mercado Livre") from e

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Send an authenticated request. A 401/403 triggers exactly one token refresh
        and one retry; if either fails the first response is returned unchanged.
        """
        access_token = await self.auth_service.ensure_valid_token(self.integration)
        response = await self._send(method, path, access_token, **kwargs)

        if response.status_code not in AUTH_FAILURE_STATUSES:
            return response

        logger.warning(
            f"Mercado Livre returned {response.status_code} for {method} {path}, "
            f"refreshing token of integration {self.integration.id}"
        )
        try:
            access_token = await self.auth_service.refresh_access_token(self.integration)
        except MercadoLivreError as e:
            logger.error(f"Token refresh after {response.status_code} failed: {e.kind.value}")
            return response

        retry = await self._send(method, path, access_token, **kwargs)
        if retry.status_code in AUTH_FAILURE_STATUSES:
            logger.error(f"Retry of {method} {path} still returned {retry.status_code}")
            return response
        return retry

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.request("GET", path, params=params)
        return self._json_or_raise(response, "GET", path)

    async def put_json(self, path: str, payload: Dict[str, Any]) -> Any:
        response = await self.request("PUT", path, json=payload)
        return self._json_or_raise(response, "PUT", path)

    def _json_or_raise(self, response: httpx.Response, method: str, path: str) -> Any:
        if response.status_code >= 400:
            logger.error(f"Mercado Livre {method} {path} failed: {response.status_code} - {response.text}")
            raise MercadoLivreError(
                MLErrorKind.UPSTREAM_ERROR,
                f"Mercado Livre request failed with status {response.status_code}",
                upstream_status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Mercado Livre {method} {path} returned invalid JSON: {response.text[:500]}")
            raise MercadoLivreError(MLErrorKind.UPSTREAM_ERROR, "Mercado Livre returned invalid JSON") from e

    async def paginate(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        results_key: str = "results",
        page_size: Optional[int] = None,
        max_items: Optional[int] = None,
    ) -> List[Any]:
        """
        Walk offset/limit pages until an empty page or offset >= paging.total.
        Any failed page aborts the whole walk; nothing partial is returned.
        """
        page_size = page_size or settings.ML_PAGE_SIZE
        max_items = max_items or settings.ML_MAX_FETCH_ITEMS
        collected: List[Any] = []
        offset = 0

        while True:
            page = await self.get_json(path, {**(params or {}), "offset": offset, "limit": page_size})
            items = page.get(results_key) or []
            if not items:
                break

            collected.extend(items)
            if len(collected) >= max_items:
                logger.warning(f"Stopping pagination of {path} at safety ceiling of {max_items} items")
                return collected[:max_items]

            offset += page_size
            total = (page.get("paging") or {}).get("total")
            if total is not None and offset >= total:
                break

        return collected

    async def fetch_items(self, item_ids: Sequence[str], attributes: Optional[str] = None) -> List[Dict[str, Any]]:
        """Item details in chunks of the provider's multiget limit, keeping only code 200 entries"""
        batch_size = settings.ML_ITEMS_BATCH_SIZE
        items: List[Dict[str, Any]] = []
        for start in range(0, len(item_ids), batch_size):
            chunk = item_ids[start:start + batch_size]
            params = {"ids": ",".join(chunk)}
            if attributes:
                params["attributes"] = attributes
            entries = await self.get_json("/items", params)
            for entry in entries or []:
                if entry.get("code") == 200 and entry.get("body"):
                    items.append(entry["body"])
                else:
                    logger.warning(f"Skipping item entry with code {entry.get('code')}")
        return items

    async def get_seller_id(self) -> str:
        profile = await self.get_json("/users/me")
        return str(profile["id"])

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
