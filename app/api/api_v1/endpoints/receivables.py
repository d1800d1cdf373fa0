from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.receivable import (
    AccountReceivableCreate, AccountReceivableUpdate, AccountReceivableResponse,
    ReceiveRequest, ReceivePaymentRequest
)
from app.services.receivable_service import ReceivableService

router = APIRouter()


@router.get("/", response_model=List[AccountReceivableResponse])
async def get_receivables(
    status: str = Query("all", pattern="^(pending|received|all)$", description="Filter by receipt status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await ReceivableService(db).list(ctx, status=status, skip=skip, limit=limit)


@router.post("/", response_model=AccountReceivableResponse, status_code=201)
async def create_receivable(
    receivable_in: AccountReceivableCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await ReceivableService(db).create(ctx, receivable_in)


@router.get("/{receivable_id}", response_model=AccountReceivableResponse)
async def get_receivable(
    receivable_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await ReceivableService(db).get(ctx, receivable_id)


@router.put("/{receivable_id}", response_model=AccountReceivableResponse)
async def update_receivable(
    receivable_id: str,
    receivable_in: AccountReceivableUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await ReceivableService(db).update(ctx, receivable_id, receivable_in)


@router.patch("/{receivable_id}/receive", response_model=AccountReceivableResponse)
async def receive(
    receivable_id: str,
    receive_in: ReceiveRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Mark as received and credit the amount to the bank account."""
    return await ReceivableService(db).receive(ctx, receivable_id, receive_in)


@router.post("/{receivable_id}/receive-payment", response_model=AccountReceivableResponse)
async def receive_payment(
    receivable_id: str,
    payment_in: ReceivePaymentRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a total or partial receipt with interest and discount.

    A partial receipt returns the new paid entry; the original keeps the remaining amount.
    """
    return await ReceivableService(db).receive_payment(ctx, receivable_id, payment_in)


@router.post("/{receivable_id}/reverse", response_model=AccountReceivableResponse)
async def reverse_receipt(
    receivable_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Undo a receipt: the bank balance goes back to its value before the receipt."""
    return await ReceivableService(db).reverse(ctx, receivable_id)


@router.delete("/{receivable_id}")
async def delete_receivable(
    receivable_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    await ReceivableService(db).delete(ctx, receivable_id)
    return {"success": True}
