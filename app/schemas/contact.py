from pydantic import BaseModel, Field, validator
from typing import Optional
from decimal import Decimal
from datetime import datetime

from app.models.contact import CONTACT_TYPES


class ContactBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact_type: str = Field("cliente", description="cliente, fornecedor, funcionario or socio")
    document: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @validator("contact_type")
    def validate_contact_type(cls, v):
        if v not in CONTACT_TYPES:
            raise ValueError(f"Contact type must be one of: {', '.join(CONTACT_TYPES)}")
        return v


class ContactCreate(ContactBase):
    pass


class ContactUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_type: Optional[str] = None
    document: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @validator("contact_type")
    def validate_contact_type(cls, v):
        if v is not None and v not in CONTACT_TYPES:
            raise ValueError(f"Contact type must be one of: {', '.join(CONTACT_TYPES)}")
        return v


class ContactResponse(ContactBase):
    id: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContactSummaryResponse(ContactResponse):
    em_aberto: Decimal = Field(Decimal("0"), description="Open amount")
    vencido: Decimal = Field(Decimal("0"), description="Overdue amount")
    movimentado: Decimal = Field(Decimal("0"), description="Settled amount")
