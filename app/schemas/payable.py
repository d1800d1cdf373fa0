from pydantic import BaseModel, Field, validator
from typing import Optional, List
from decimal import Decimal
from datetime import date, datetime


class AccountPayableBase(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, description="Total amount")
    due_date: date
    competence_date: Optional[date] = None
    contact_id: Optional[str] = None
    category_id: Optional[str] = None
    bank_account_id: Optional[str] = Field(None, description="Defaults to the company's default account")
    payment_method: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class AccountPayableCreate(AccountPayableBase):
    total_installments: int = Field(1, ge=1, le=360, description="Split into monthly installments")
    is_paid: bool = False
    paid_date: Optional[date] = None


class AccountPayableUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0)
    due_date: Optional[date] = None
    competence_date: Optional[date] = None
    contact_id: Optional[str] = None
    category_id: Optional[str] = None
    bank_account_id: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class PayRequest(BaseModel):
    bank_account_id: Optional[str] = None
    paid_date: Optional[date] = None


class MakePaymentRequest(BaseModel):
    payment_type: str = Field("total", pattern="^(total|partial)$")
    amount: Optional[Decimal] = Field(None, gt=0, description="Required for partial payments")
    interest: Decimal = Field(Decimal("0"), ge=0, description="Juros")
    discount: Decimal = Field(Decimal("0"), ge=0, description="Desconto")
    payment_date: Optional[date] = None
    bank_account_id: Optional[str] = None
    notes: Optional[str] = None

    @validator("amount")
    def amount_required_for_partial(cls, v, values):
        if values.get("payment_type") == "partial" and v is None:
            raise ValueError("Amount is required for partial payments")
        return v


class PaymentRecordResponse(BaseModel):
    id: str
    amount: Decimal
    payment_date: date
    bank_account_id: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class AccountPayableResponse(AccountPayableBase):
    id: str
    is_paid: bool
    paid_date: Optional[date] = None
    interest: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    parent_id: Optional[str] = None
    installment_number: Optional[int] = None
    total_installments: Optional[int] = None
    paid_amount: Decimal = Decimal("0")
    outstanding: Decimal = Decimal("0")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccountPayableDetail(AccountPayableResponse):
    payment_records: List[PaymentRecordResponse] = []
