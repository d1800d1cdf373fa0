from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ProductMappingCreate(BaseModel):
    product_sku: str = Field(..., min_length=1)
    integration_id: str = Field(..., min_length=1)
    listing_id: str = Field(..., min_length=1, description="Mercado Livre item id, e.g. MLB123")
    variation_id: Optional[str] = None


class ProductMappingResponse(BaseModel):
    id: str
    product_id: str
    product_sku: str
    integration_id: str
    listing_id: str
    variation_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductMappingCreateResponse(ProductMappingResponse):
    stock_pushed: bool = False
