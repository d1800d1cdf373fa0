from pydantic import BaseModel, Field, validator
from typing import List, Optional
from decimal import Decimal
import re


class SalesRowIn(BaseModel):
    sku: str = Field(..., min_length=1)
    name: Optional[str] = None
    units: int = Field(0, ge=0)
    revenue: Decimal = Field(Decimal("0"), ge=0)


class SalesImportRequest(BaseModel):
    month_year: str = Field(..., description="YYYY-MM")
    rows: List[SalesRowIn]

    @validator("month_year")
    def validate_month_year(cls, v):
        if not re.fullmatch(r"\d{4}-(0[1-9]|1[0-2])", v):
            raise ValueError("month_year must be formatted as YYYY-MM")
        return v


class ProductSalesResponse(BaseModel):
    sku: str
    name: str
    units: float
    revenue: float
    avg_price: float
    not_found: bool = False
    unallocated: bool = False
