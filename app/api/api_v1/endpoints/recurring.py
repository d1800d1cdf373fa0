from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.recurring_transaction import (
    RecurringTransactionCreate, RecurringTransactionUpdate, RecurringTransactionResponse
)
from app.services.recurring_service import RecurringService

router = APIRouter()


@router.get("/", response_model=List[RecurringTransactionResponse])
async def get_recurring_transactions(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await RecurringService(db).list(ctx)


@router.post("/", response_model=RecurringTransactionResponse, status_code=201)
async def create_recurring_transaction(
    rule_in: RecurringTransactionCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await RecurringService(db).create(ctx, rule_in)


@router.post("/generate")
async def generate_transactions(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Create the payables (expense rules) and receivables (income rules) due up to today.
    """
    generated = await RecurringService(db).generate(ctx)
    return {"generated": generated}


@router.put("/{rule_id}", response_model=RecurringTransactionResponse)
async def update_recurring_transaction(
    rule_id: str,
    rule_in: RecurringTransactionUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await RecurringService(db).update(ctx, rule_id, rule_in)


@router.patch("/{rule_id}/toggle", response_model=RecurringTransactionResponse)
async def toggle_recurring_transaction(
    rule_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await RecurringService(db).toggle(ctx, rule_id)


@router.delete("/{rule_id}")
async def delete_recurring_transaction(
    rule_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    await RecurringService(db).delete(ctx, rule_id)
    return {"success": True}
