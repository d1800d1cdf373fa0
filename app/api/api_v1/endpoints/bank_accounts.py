from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.schemas.bank_account import (
    BankAccountCreate, BankAccountUpdate, BankAccountResponse,
    TransactionValidationRequest, TransactionValidationResponse
)
from app.services.bank_account_service import BankAccountService

router = APIRouter()


@router.get("/", response_model=List[BankAccountResponse])
async def get_bank_accounts(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Active bank accounts, default account first."""
    return await BankAccountService(db).list(ctx)


@router.get("/default", response_model=BankAccountResponse)
async def get_default_bank_account(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    account = await BankAccountService(db).get_default(ctx)
    if not account:
        raise HTTPException(status_code=404, detail="No default bank account")
    return account


@router.post("/", response_model=BankAccountResponse, status_code=201)
async def create_bank_account(
    account_in: BankAccountCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a bank account.

    The first account of a company always becomes the default one.
    """
    return await BankAccountService(db).create(ctx, account_in)


@router.post("/validate-transaction", response_model=TransactionValidationResponse)
async def validate_transaction(
    request: TransactionValidationRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Check whether a debit or credit fits the balance plus overdraft limit."""
    return await BankAccountService(db).validate_transaction(ctx, request)


@router.get("/{account_id}", response_model=BankAccountResponse)
async def get_bank_account(
    account_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await BankAccountService(db).get(ctx, account_id)


@router.put("/{account_id}", response_model=BankAccountResponse)
async def update_bank_account(
    account_id: str,
    account_in: BankAccountUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await BankAccountService(db).update(ctx, account_id, account_in)


@router.post("/{account_id}/set-default", response_model=BankAccountResponse)
async def set_default_bank_account(
    account_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await BankAccountService(db).set_default(ctx, account_id)


@router.delete("/{account_id}")
async def delete_bank_account(
    account_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    await BankAccountService(db).delete(ctx, account_id)
    return {"success": True}
