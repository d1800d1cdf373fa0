"""
Mercado Livre sales analytics: daily revenue and order counts in the merchant timezone
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import MercadoLivreError, MLErrorKind, ValidationError
from app.core.tenant import TenantContext
from app.crud.ml_integration import ml_integration_crud
from app.services.ml_client import MercadoLivreClient
from app.utils.dates import day_range, format_date, local_date

logger = logging.getLogger(__name__)

REVENUE_MODES = ("gross", "net")
# Fixed offset of America/Sao_Paulo used in the search bounds (no DST since 2019)
SEARCH_UTC_OFFSET = "-03:00"


@dataclass(slots=True)
class DailyBucket:
    date: date
    revenue: Decimal = Decimal("0")
    orders: int = 0
    approximated: bool = False


@dataclass(slots=True)
class OrderSummary:
    timezone: str
    date_from: date
    date_to: date
    mode: str
    daily: list[DailyBucket] = field(default_factory=list)

    @property
    def revenue(self) -> Decimal:
        return sum((bucket.revenue for bucket in self.daily), Decimal("0"))

    @property
    def orders(self) -> int:
        return sum(bucket.orders for bucket in self.daily)

    @property
    def avg_ticket(self) -> Decimal:
        if self.orders == 0:
            return Decimal("0")
        return self.revenue / self.orders

    @property
    def approximated(self) -> bool:
        return any(bucket.approximated for bucket in self.daily)

    def as_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "from": format_date(self.date_from),
            "to": format_date(self.date_to),
            "mode": self.mode,
            "totals": {
                "revenue": round2(self.revenue),
                "orders": self.orders,
                "avg_ticket": round2(self.avg_ticket),
                "approximated": self.approximated,
            },
            "daily": [
                {
                    "date": format_date(bucket.date),
                    "revenue": round2(bucket.revenue),
                    "orders": bucket.orders,
                    "approximated": bucket.approximated,
                }
                for bucket in self.daily
            ],
        }


def round2(value: Decimal) -> float:
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def gross_amount(order: dict[str, Any]) -> Decimal:
    amount = _to_decimal(order.get("total_amount"))
    if amount is None:
        amount = _to_decimal(order.get("paid_amount"))
    return amount or Decimal("0")


def net_amount(order: dict[str, Any]) -> Optional[Decimal]:
    """Sum of net_received_amount across payments, or None when no payment reports it."""
    total = Decimal("0")
    found = False
    for payment in order.get("payments") or []:
        details = payment.get("transaction_details") or {}
        value = _to_decimal(details.get("net_received_amount"))
        if value is not None:
            total += value
            found = True
    return total if found else None


def order_bucket_date(order: dict[str, Any], tz_name: str) -> Optional[date]:
    timestamp = order.get("date_closed") or order.get("date_created")
    if not timestamp:
        return None
    return local_date(timestamp, tz_name)


def aggregate_orders(
    orders: Iterable[dict[str, Any]],
    date_from: date,
    date_to: date,
    mode: str = "gross",
    tz_name: Optional[str] = None,
) -> OrderSummary:
    """
    Reduce raw orders into one bucket per calendar day of the range.

    Only paid orders count. In net mode an order without net figures falls back
    to its gross amount and marks its day as approximated.
    """
    if mode not in REVENUE_MODES:
        raise ValidationError(f"Invalid mode '{mode}', expected one of: {', '.join(REVENUE_MODES)}")
    if date_from > date_to:
        raise ValidationError("'from' must not be after 'to'")

    tz_name = tz_name or settings.MERCHANT_TIMEZONE
    buckets = {day: DailyBucket(date=day) for day in day_range(date_from, date_to)}

    for order in orders:
        if (order.get("status") or "").lower() != "paid":
            continue
        bucket = buckets.get(order_bucket_date(order, tz_name))
        if bucket is None:
            continue

        if mode == "net":
            amount = net_amount(order)
            if amount is None:
                amount = gross_amount(order)
                bucket.approximated = True
        else:
            amount = gross_amount(order)

        bucket.revenue += amount
        bucket.orders += 1

    return OrderSummary(
        timezone=tz_name,
        date_from=date_from,
        date_to=date_to,
        mode=mode,
        daily=list(buckets.values()),
    )


class MLAnalyticsService:
    def __init__(self, db: AsyncSession, http_client=None):
        self.db = db
        self.http_client = http_client

    async def fetch_paid_orders(
        self, client: MercadoLivreClient, seller_id: str, date_from: date, date_to: date
    ) -> list[dict[str, Any]]:
        params = {
            "seller": seller_id,
            "order.status": "paid",
            "order.date_created.from": f"{format_date(date_from)}T00:00:00.000{SEARCH_UTC_OFFSET}",
            "order.date_created.to": f"{format_date(date_to)}T23:59:59.999{SEARCH_UTC_OFFSET}",
            "sort": "date_desc",
        }
        return await client.paginate("/orders/search", params)

    async def get_summary(
        self,
        ctx: TenantContext,
        integration_id: str,
        date_from: date,
        date_to: date,
        mode: str = "gross",
    ) -> OrderSummary:
        if mode not in REVENUE_MODES:
            raise ValidationError(f"Invalid mode '{mode}', expected one of: {', '.join(REVENUE_MODES)}")
        if date_from > date_to:
            raise ValidationError("'from' must not be after 'to'")

        integration = await ml_integration_crud.get(self.db, ctx.company_id, integration_id)
        if not integration:
            raise MercadoLivreError(MLErrorKind.INTEGRATION_NOT_FOUND, "Integration not found")

        async with MercadoLivreClient(self.db, integration, http_client=self.http_client) as client:
            seller_id = await client.get_seller_id()
            orders = await self.fetch_paid_orders(client, seller_id, date_from, date_to)

        logger.info(
            f"Aggregating {len(orders)} orders of integration {integration_id} "
            f"from {date_from} to {date_to} ({mode})"
        )
        return aggregate_orders(orders, date_from, date_to, mode)
