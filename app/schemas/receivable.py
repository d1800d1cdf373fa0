from pydantic import BaseModel, Field, validator
from typing import Optional
from decimal import Decimal
from datetime import date, datetime


class AccountReceivableBase(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=500)
    amount: Decimal = Field(..., gt=0)
    receipt_date: date = Field(..., description="Expected receipt date")
    competence_date: Optional[date] = None
    contact_id: Optional[str] = None
    category_id: Optional[str] = None
    bank_account_id: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class AccountReceivableCreate(AccountReceivableBase):
    pass


class AccountReceivableUpdate(BaseModel):
    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0)
    receipt_date: Optional[date] = None
    competence_date: Optional[date] = None
    contact_id: Optional[str] = None
    category_id: Optional[str] = None
    bank_account_id: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class ReceiveRequest(BaseModel):
    bank_account_id: Optional[str] = None
    paid_date: Optional[date] = None


class ReceivePaymentRequest(BaseModel):
    payment_type: str = Field("total", pattern="^(total|partial)$")
    amount: Optional[Decimal] = Field(None, gt=0)
    interest: Decimal = Field(Decimal("0"), ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    payment_date: Optional[date] = None
    bank_account_id: Optional[str] = None

    @validator("amount")
    def amount_required_for_partial(cls, v, values):
        if values.get("payment_type") == "partial" and v is None:
            raise ValueError("Amount is required for partial receipts")
        return v


class AccountReceivableResponse(AccountReceivableBase):
    id: str
    is_paid: bool
    paid_date: Optional[date] = None
    interest: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    parent_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
