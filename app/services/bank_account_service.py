"""
Bank accounts and balance movements.

Balance changes are read-modify-write on the account row without locking;
concurrent payments against the same account can race.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InsufficientBalanceError, NotFoundError, ValidationError
from app.core.tenant import TenantContext
from app.models.bank_account import BankAccount
from app.schemas.bank_account import BankAccountCreate, BankAccountUpdate, TransactionValidationRequest

logger = logging.getLogger(__name__)


def available_funds(account: BankAccount) -> Decimal:
    return Decimal(account.current_balance or 0) + Decimal(account.overdraft_limit or 0)


class BankAccountService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list(self, ctx: TenantContext) -> List[BankAccount]:
        result = await self.db.execute(
            select(BankAccount)
            .where(BankAccount.company_id == ctx.company_id, BankAccount.is_active.is_(True))
            .order_by(BankAccount.is_default.desc(), BankAccount.name)
        )
        return list(result.scalars().all())

    async def get(self, ctx: TenantContext, account_id: str, include_inactive: bool = False) -> BankAccount:
        stmt = select(BankAccount).where(BankAccount.company_id == ctx.company_id, BankAccount.id == account_id)
        if not include_inactive:
            stmt = stmt.where(BankAccount.is_active.is_(True))
        account = (await self.db.execute(stmt)).scalar_one_or_none()
        if not account:
            raise NotFoundError("Bank account not found")
        return account

    async def get_default(self, ctx: TenantContext) -> Optional[BankAccount]:
        result = await self.db.execute(
            select(BankAccount)
            .where(
                BankAccount.company_id == ctx.company_id,
                BankAccount.is_active.is_(True),
                BankAccount.is_default.is_(True),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def resolve(self, ctx: TenantContext, account_id: Optional[str]) -> Optional[BankAccount]:
        """The given account, or the company default when none is given"""
        if account_id:
            return await self.get(ctx, account_id)
        return await self.get_default(ctx)

    async def _clear_default(self, ctx: TenantContext) -> None:
        await self.db.execute(
            update(BankAccount)
            .where(BankAccount.company_id == ctx.company_id, BankAccount.is_default.is_(True))
            .values(is_default=False)
        )

    async def create(self, ctx: TenantContext, account_in: BankAccountCreate) -> BankAccount:
        is_first = not await self.list(ctx)
        make_default = is_first or account_in.is_default
        if make_default and not is_first:
            await self._clear_default(ctx)

        account = BankAccount(
            company_id=ctx.company_id,
            **account_in.model_dump(exclude={"is_default"}),
            current_balance=account_in.initial_balance,
            is_default=make_default,
            is_active=True,
        )
        self.db.add(account)
        await self.db.commit()
        await self.db.refresh(account)
        logger.info(f"Created bank account {account.id} for company {ctx.company_id}")
        return account

    async def update(self, ctx: TenantContext, account_id: str, account_in: BankAccountUpdate) -> BankAccount:
        account = await self.get(ctx, account_id)
        update_data = account_in.model_dump(exclude_unset=True)

        new_initial = update_data.pop("initial_balance", None)
        if new_initial is not None:
            # Shift the running balance by the change in opening balance
            delta = Decimal(new_initial) - Decimal(account.initial_balance or 0)
            account.initial_balance = new_initial
            account.current_balance = Decimal(account.current_balance or 0) + delta

        for field, value in update_data.items():
            if value is not None:
                setattr(account, field, value)

        await self.db.commit()
        await self.db.refresh(account)
        return account

    async def set_default(self, ctx: TenantContext, account_id: str) -> BankAccount:
        account = await self.get(ctx, account_id)
        await self._clear_default(ctx)
        account.is_default = True
        await self.db.commit()
        await self.db.refresh(account)
        return account

    async def delete(self, ctx: TenantContext, account_id: str) -> None:
        """Soft delete; the oldest remaining account inherits the default flag"""
        account = await self.get(ctx, account_id)
        was_default = account.is_default
        account.is_active = False
        account.is_default = False
        await self.db.flush()

        if was_default:
            result = await self.db.execute(
                select(BankAccount)
                .where(BankAccount.company_id == ctx.company_id, BankAccount.is_active.is_(True))
                .order_by(BankAccount.created_at)
                .limit(1)
            )
            successor = result.scalar_one_or_none()
            if successor:
                successor.is_default = True

        await self.db.commit()

    async def validate_transaction(self, ctx: TenantContext, request: TransactionValidationRequest) -> dict:
        account = await self.get(ctx, request.bank_account_id)
        current = Decimal(account.current_balance or 0)
        overdraft = Decimal(account.overdraft_limit or 0)
        new_balance = current - request.amount if request.type == "debit" else current + request.amount
        return {
            "valid": new_balance >= -overdraft,
            "current_balance": current,
            "new_balance": new_balance,
            "available": current + overdraft,
            "overdraft_limit": overdraft,
        }

    def debit(self, account: BankAccount, amount: Decimal, enforce_limit: bool = True) -> None:
        """Take money out; rejected when it would exceed balance plus overdraft"""
        amount = Decimal(amount)
        if amount < 0:
            raise ValidationError("Debit amount must not be negative")
        available = available_funds(account)
        if enforce_limit and amount > available:
            raise InsufficientBalanceError(available=available, amount=amount)
        account.current_balance = Decimal(account.current_balance or 0) - amount

    def credit(self, account: BankAccount, amount: Decimal) -> None:
        amount = Decimal(amount)
        if amount < 0:
            raise ValidationError("Credit amount must not be negative")
        account.current_balance = Decimal(account.current_balance or 0) + amount
