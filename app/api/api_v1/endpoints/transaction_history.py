from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.transaction_history import TransactionHistoryResponse
from app.services.transaction_history_service import TransactionHistoryService

router = APIRouter()


@router.get("/", response_model=List[TransactionHistoryResponse])
async def get_transaction_history(
    transaction_type: Optional[str] = Query(None, pattern="^(income|expense)$"),
    transaction_id: Optional[str] = Query(None, description="Only entries of this payable or receivable"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Audit trail of payable and receivable changes, newest first."""
    return await TransactionHistoryService(db).list(
        ctx, transaction_type=transaction_type, transaction_id=transaction_id, skip=skip, limit=limit
    )
