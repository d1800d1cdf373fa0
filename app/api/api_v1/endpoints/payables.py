from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.payable import (
    AccountPayableCreate, AccountPayableUpdate, AccountPayableResponse, AccountPayableDetail,
    PayRequest, MakePaymentRequest
)
from app.services.payable_service import PayableService

router = APIRouter()


@router.get("/", response_model=List[AccountPayableResponse])
async def get_payables(
    status: str = Query("all", pattern="^(pending|paid|all)$", description="Filter by payment status"),
    due_from: Optional[date] = Query(None, description="Due on or after"),
    due_to: Optional[date] = Query(None, description="Due on or before"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    List accounts payable.

    Each entry carries `paid_amount` and `outstanding` computed from its payments.
    """
    service = PayableService(db)
    payables = await service.list(ctx, status=status, due_from=due_from, due_to=due_to, skip=skip, limit=limit)
    return [service.describe(payable) for payable in payables]


@router.post("/", response_model=List[AccountPayableResponse], status_code=201)
async def create_payable(
    payable_in: AccountPayableCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a payable, or one payable per installment when `total_installments > 1`.
    """
    service = PayableService(db)
    payables = await service.create(ctx, payable_in)
    return [service.describe(payable) for payable in payables]


@router.get("/{payable_id}", response_model=AccountPayableDetail)
async def get_payable(
    payable_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    service = PayableService(db)
    return service.describe(await service.get(ctx, payable_id), with_records=True)


@router.put("/{payable_id}", response_model=AccountPayableResponse)
async def update_payable(
    payable_id: str,
    payable_in: AccountPayableUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    service = PayableService(db)
    return service.describe(await service.update(ctx, payable_id, payable_in))


@router.patch("/{payable_id}/pay", response_model=AccountPayableResponse)
async def pay_payable(
    payable_id: str,
    pay_in: PayRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Pay the outstanding amount from a bank account (400 with the shortfall when funds are missing)."""
    service = PayableService(db)
    return service.describe(await service.pay(ctx, payable_id, pay_in))


@router.patch("/{payable_id}/unpay", response_model=AccountPayableResponse)
async def unpay_payable(
    payable_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Undo all payments, crediting the money back to the bank accounts."""
    service = PayableService(db)
    return service.describe(await service.unpay(ctx, payable_id))


@router.post("/{payable_id}/make-payment", response_model=AccountPayableDetail)
async def make_payment(
    payment_in: MakePaymentRequest,
    payable_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a total or partial payment.

    - **total**: pays the outstanding amount plus interest minus discount
    - **partial**: records a payment of `amount`; the payable is settled once payments cover it
    """
    service = PayableService(db)
    return service.describe(await service.make_payment(ctx, payable_id, payment_in), with_records=True)


@router.delete("/{payable_id}")
async def delete_payable(
    payable_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    await PayableService(db).delete(ctx, payable_id)
    return {"success": True}
