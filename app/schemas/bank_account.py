from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime


class BankAccountBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Account label")
    bank_name: Optional[str] = Field(None, max_length=255)
    agency: Optional[str] = Field(None, max_length=20)
    account_number: Optional[str] = Field(None, max_length=50)
    overdraft_limit: Decimal = Field(Decimal("0"), ge=0, description="Allowed negative balance")


class BankAccountCreate(BankAccountBase):
    initial_balance: Decimal = Field(Decimal("0"), description="Opening balance")
    is_default: bool = False


class BankAccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    bank_name: Optional[str] = Field(None, max_length=255)
    agency: Optional[str] = Field(None, max_length=20)
    account_number: Optional[str] = Field(None, max_length=50)
    initial_balance: Optional[Decimal] = None
    overdraft_limit: Optional[Decimal] = Field(None, ge=0)


class BankAccountResponse(BankAccountBase):
    id: str
    initial_balance: Decimal
    current_balance: Decimal
    is_default: bool
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransactionValidationRequest(BaseModel):
    bank_account_id: str
    amount: Decimal = Field(..., gt=0)
    type: str = Field("debit", pattern="^(debit|credit)$")


class TransactionValidationResponse(BaseModel):
    valid: bool
    current_balance: Decimal
    new_balance: Decimal
    available: Decimal
    overdraft_limit: Decimal
