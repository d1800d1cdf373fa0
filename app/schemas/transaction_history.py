from pydantic import BaseModel
from typing import Optional, List, Any, Dict
from datetime import datetime


class TransactionHistoryResponse(BaseModel):
    id: str
    transaction_type: str
    transaction_id: str
    action: str
    changed_fields: Optional[List[str]] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
