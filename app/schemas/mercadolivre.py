from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from decimal import Decimal
from datetime import datetime


class ConnectionLinkResponse(BaseModel):
    token: str
    url: str
    expires_at: datetime


class AuthorizationUrlResponse(BaseModel):
    url: str


class FinishOAuthRequest(BaseModel):
    code: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)


class IntegrationResponse(BaseModel):
    id: str
    ml_user_id: str
    nickname: Optional[str] = None
    site_id: Optional[str] = None
    status: Optional[str] = None
    status_calc: str
    days_remaining: int
    connected_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NicknameUpdate(BaseModel):
    nickname: str = Field(..., min_length=1, max_length=255)


class ListingResponse(BaseModel):
    id: str
    integration_id: str
    listing_id: str
    title: Optional[str] = None
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    available_quantity: Optional[int] = None
    sold_quantity: Optional[int] = None
    status: Optional[str] = None
    permalink: Optional[str] = None
    thumbnail: Optional[str] = None
    category_name: Optional[str] = None
    sku: Optional[str] = None
    has_variations: Optional[bool] = None
    last_synced_at: Optional[datetime] = None
    mapped: bool = False
    mapped_sku: Optional[str] = None

    class Config:
        from_attributes = True


class SyncResult(BaseModel):
    success: bool
    synced: int
    failed: int
    total: int
    skipped: List[str] = []


class DailyRevenue(BaseModel):
    date: str
    revenue: float
    orders: int
    approximated: bool = False


class SummaryTotals(BaseModel):
    revenue: float
    orders: int
    avg_ticket: float
    approximated: bool = False


class AnalyticsSummary(BaseModel):
    timezone: str
    from_date: str = Field(..., alias="from")
    to_date: str = Field(..., alias="to")
    mode: str
    totals: SummaryTotals
    daily: List[DailyRevenue]

    class Config:
        populate_by_name = True


class ItemUpdate(BaseModel):
    """Free-form item payload forwarded to Mercado Livre."""
    data: Dict[str, Any]


class DescriptionUpdate(BaseModel):
    plain_text: str = Field(..., min_length=1)
