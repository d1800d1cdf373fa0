from pydantic import BaseModel, Field, validator
from typing import Optional
from decimal import Decimal
from datetime import date, datetime


class RecurringTransactionBase(BaseModel):
    type: str = Field(..., pattern="^(expense|income)$")
    recurrence_type: str = Field(..., pattern="^(monthly|installment)$")
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, description="Monthly amount, or total for installment rules")
    person_name: Optional[str] = Field(None, max_length=255)
    contact_id: Optional[str] = None
    category_id: Optional[str] = None
    bank_account_id: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    start_date: date
    end_date: Optional[date] = None
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    total_installments: Optional[int] = Field(None, ge=1, le=360)


class RecurringTransactionCreate(RecurringTransactionBase):

    @validator("total_installments", always=True)
    def installments_required(cls, v, values):
        if values.get("recurrence_type") == "installment" and not v:
            raise ValueError("total_installments is required for installment rules")
        return v

    @validator("end_date")
    def end_after_start(cls, v, values):
        start = values.get("start_date")
        if v is not None and start is not None and v < start:
            raise ValueError("end_date must not be before start_date")
        return v


class RecurringTransactionUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0)
    person_name: Optional[str] = Field(None, max_length=255)
    contact_id: Optional[str] = None
    category_id: Optional[str] = None
    bank_account_id: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    end_date: Optional[date] = None
    day_of_month: Optional[int] = Field(None, ge=1, le=31)


class RecurringTransactionResponse(RecurringTransactionBase):
    id: str
    current_installment: Optional[int] = 0
    last_generated_date: Optional[date] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
