from pydantic import BaseModel, Field, validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime

from app.models.product import PRODUCT_TYPES


class KitItemIn(BaseModel):
    component_sku: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class DynamicItemIn(BaseModel):
    component_sku: str = Field(..., min_length=1)


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    brand: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=255)
    barcode: Optional[str] = Field(None, max_length=64)
    sale_price: Decimal = Field(Decimal("0"), ge=0)
    cost_price: Decimal = Field(Decimal("0"), ge=0)
    stock: int = Field(0, ge=0)
    is_active: bool = True


class ProductCreate(ProductBase):
    product_type: str = Field(..., description="simple, kit or dynamic")
    sku: str = Field(..., min_length=1, max_length=255)
    kit_items: List[KitItemIn] = []
    dynamic_items: List[DynamicItemIn] = []

    @validator("product_type")
    def validate_product_type(cls, v):
        if v not in PRODUCT_TYPES:
            raise ValueError(f"Product type must be one of: {', '.join(PRODUCT_TYPES)}")
        return v

    @validator("sku")
    def sku_is_not_reserved(cls, v):
        v = v.strip()
        if "_deleted_" in v:
            raise ValueError("SKU must not contain '_deleted_'")
        return v

    @validator("kit_items", always=True)
    def kit_requires_items(cls, v, values):
        if values.get("product_type") == "kit" and not v:
            raise ValueError("A kit needs at least one component")
        return v

    @validator("dynamic_items", always=True)
    def dynamic_requires_items(cls, v, values):
        if values.get("product_type") == "dynamic" and not v:
            raise ValueError("A dynamic product needs at least one component")
        return v


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    brand: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=255)
    barcode: Optional[str] = Field(None, max_length=64)
    sale_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    kit_items: Optional[List[KitItemIn]] = None
    dynamic_items: Optional[List[DynamicItemIn]] = None


class ToggleStatusRequest(BaseModel):
    is_active: bool


class BulkDeleteRequest(BaseModel):
    skus: List[str] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted: List[str]
    errors: List[str] = []


class ComponentInfo(BaseModel):
    component_id: str
    component_sku: str
    name: str
    quantity: int = 1
    stock: int = 0
    cost_price: Decimal = Decimal("0")


class ProductResponse(ProductBase):
    id: str
    sku: str
    product_type: str
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    components: List[ComponentInfo] = Field([], description="Kit or dynamic components")

    class Config:
        from_attributes = True
