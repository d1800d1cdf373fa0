from pydantic import BaseModel, Field
from typing import Optional


class FinanceCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., pattern="^(receita|despesa)$")
    group_name: Optional[str] = Field(None, max_length=255)
    display_order: int = 0


class FinanceCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = Field(None, pattern="^(receita|despesa)$")
    group_name: Optional[str] = Field(None, max_length=255)
    display_order: Optional[int] = None


class FinanceCategoryResponse(BaseModel):
    id: str
    name: str
    type: str
    group_name: Optional[str] = None
    is_native: bool
    display_order: int = 0

    class Config:
        from_attributes = True
