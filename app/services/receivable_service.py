"""
Accounts receivable: receipts, partial receipts and reversals
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.core.tenant import TenantContext
from app.models.account_receivable import AccountReceivable
from app.schemas.receivable import (
    AccountReceivableCreate, AccountReceivableUpdate, ReceiveRequest, ReceivePaymentRequest
)
from app.services.bank_account_service import BankAccountService
from app.services.payable_service import ensure_references
from app.services.transaction_history_service import TransactionHistoryService, snapshot
from app.utils.dates import today_in_tz

logger = logging.getLogger(__name__)

TRACKED_FIELDS = [
    "customer_name", "description", "amount", "receipt_date", "competence_date", "paid_date",
    "is_paid", "contact_id", "category_id", "bank_account_id", "payment_method", "notes",
    "interest", "discount",
]


def received_amount(receivable: AccountReceivable) -> Decimal:
    """What a paid receivable put into its bank account"""
    return (
        Decimal(receivable.amount)
        + Decimal(receivable.interest or 0)
        - Decimal(receivable.discount or 0)
    )


class ReceivableService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.banks = BankAccountService(db)
        self.history = TransactionHistoryService(db)

    async def get(self, ctx: TenantContext, receivable_id: str) -> AccountReceivable:
        result = await self.db.execute(
            select(AccountReceivable).where(
                AccountReceivable.company_id == ctx.company_id,
                AccountReceivable.id == receivable_id,
            )
        )
        receivable = result.scalar_one_or_none()
        if not receivable:
            raise NotFoundError("Receivable not found")
        return receivable

    async def list(
        self, ctx: TenantContext, status: str = "all", skip: int = 0, limit: int = 100
    ) -> List[AccountReceivable]:
        stmt = (
            select(AccountReceivable)
            .where(AccountReceivable.company_id == ctx.company_id)
            .order_by(AccountReceivable.receipt_date, AccountReceivable.customer_name)
        )
        if status == "pending":
            stmt = stmt.where(AccountReceivable.is_paid.is_(False))
        elif status == "received":
            stmt = stmt.where(AccountReceivable.is_paid.is_(True))
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def _bank_for(self, ctx: TenantContext, bank_account_id: Optional[str]):
        bank = await self.banks.resolve(ctx, bank_account_id)
        if bank is None:
            raise ValidationError("No bank account given and the company has no default account")
        return bank

    async def create(self, ctx: TenantContext, receivable_in: AccountReceivableCreate) -> AccountReceivable:
        await ensure_references(self.db, ctx, receivable_in.contact_id, receivable_in.category_id)
        bank = await self.banks.resolve(ctx, receivable_in.bank_account_id)

        receivable = AccountReceivable(
            company_id=ctx.company_id,
            **receivable_in.model_dump(exclude={"bank_account_id"}),
            bank_account_id=bank.id if bank else None,
            is_paid=False,
            interest=Decimal("0"),
            discount=Decimal("0"),
        )
        self.db.add(receivable)
        await self.db.flush()
        self.history.log_transaction(
            ctx, "income", receivable.id, "create", new_values=snapshot(receivable, TRACKED_FIELDS)
        )
        await self.db.commit()
        await self.db.refresh(receivable)
        return receivable

    async def receive(self, ctx: TenantContext, receivable_id: str, receive_in: ReceiveRequest) -> AccountReceivable:
        receivable = await self.get(ctx, receivable_id)
        if receivable.is_paid:
            raise ValidationError("Receivable is already received")

        old_values = snapshot(receivable, TRACKED_FIELDS)
        bank = await self._bank_for(ctx, receive_in.bank_account_id or receivable.bank_account_id)
        self.banks.credit(bank, receivable.amount)
        receivable.is_paid = True
        receivable.paid_date = receive_in.paid_date or today_in_tz()
        receivable.bank_account_id = bank.id

        self.history.log_transaction(
            ctx, "income", receivable.id, "receive",
            old_values=old_values, new_values=snapshot(receivable, TRACKED_FIELDS),
        )
        await self.db.commit()
        await self.db.refresh(receivable)
        return receivable

    async def receive_payment(
        self, ctx: TenantContext, receivable_id: str, payment_in: ReceivePaymentRequest
    ) -> AccountReceivable:
        """
        Total receipts credit amount plus interest minus discount. A partial receipt
        splits the record: the received part becomes a paid child row and the
        original keeps the remainder.
        """
        receivable = await self.get(ctx, receivable_id)
        if receivable.is_paid:
            raise ValidationError("Receivable is already received")

        old_values = snapshot(receivable, TRACKED_FIELDS)
        bank = await self._bank_for(ctx, payment_in.bank_account_id or receivable.bank_account_id)
        payment_date = payment_in.payment_date or today_in_tz()
        amount = Decimal(receivable.amount)

        if payment_in.payment_type == "partial" and Decimal(payment_in.amount) < amount:
            received = AccountReceivable(
                company_id=ctx.company_id,
                customer_name=receivable.customer_name,
                description=receivable.description,
                amount=payment_in.amount,
                receipt_date=receivable.receipt_date,
                competence_date=receivable.competence_date,
                contact_id=receivable.contact_id,
                category_id=receivable.category_id,
                bank_account_id=bank.id,
                payment_method=receivable.payment_method,
                notes=receivable.notes,
                is_paid=True,
                paid_date=payment_date,
                interest=payment_in.interest,
                discount=payment_in.discount,
                parent_id=receivable.id,
            )
            credited = received_amount(received)
            if credited < 0:
                raise ValidationError("Discount cannot exceed the received amount plus interest")
            self.banks.credit(bank, credited)
            receivable.amount = amount - Decimal(payment_in.amount)
            self.db.add(received)
            await self.db.flush()
            self.history.log_transaction(
                ctx, "income", received.id, "receive", new_values=snapshot(received, TRACKED_FIELDS)
            )
            self.history.log_transaction(
                ctx, "income", receivable.id, "update",
                old_values=old_values, new_values=snapshot(receivable, TRACKED_FIELDS),
            )
            await self.db.commit()
            await self.db.refresh(received)
            return received

        if payment_in.payment_type == "partial" and Decimal(payment_in.amount) > amount:
            raise ValidationError(f"Partial receipt exceeds the open amount of {amount}")

        receivable.interest = payment_in.interest
        receivable.discount = payment_in.discount
        credited = received_amount(receivable)
        if credited < 0:
            raise ValidationError("Discount cannot exceed the amount plus interest")
        self.banks.credit(bank, credited)
        receivable.is_paid = True
        receivable.paid_date = payment_date
        receivable.bank_account_id = bank.id

        self.history.log_transaction(
            ctx, "income", receivable.id, "receive",
            old_values=old_values, new_values=snapshot(receivable, TRACKED_FIELDS),
        )
        await self.db.commit()
        await self.db.refresh(receivable)
        return receivable

    async def _take_back(self, ctx: TenantContext, receivable: AccountReceivable) -> None:
        # Restores the state before the receipt, so no overdraft check
        if receivable.bank_account_id:
            bank = await self.banks.get(ctx, receivable.bank_account_id, include_inactive=True)
            self.banks.debit(bank, received_amount(receivable), enforce_limit=False)

    async def reverse(self, ctx: TenantContext, receivable_id: str) -> AccountReceivable:
        receivable = await self.get(ctx, receivable_id)
        if not receivable.is_paid:
            raise NotFoundError("Received entry not found")

        old_values = snapshot(receivable, TRACKED_FIELDS)
        await self._take_back(ctx, receivable)
        receivable.is_paid = False
        receivable.paid_date = None
        receivable.interest = Decimal("0")
        receivable.discount = Decimal("0")

        self.history.log_transaction(
            ctx, "income", receivable.id, "reverse",
            old_values=old_values, new_values=snapshot(receivable, TRACKED_FIELDS),
        )
        await self.db.commit()
        await self.db.refresh(receivable)
        logger.info(f"Reversed receipt of {receivable.id}")
        return receivable

    async def update(
        self, ctx: TenantContext, receivable_id: str, receivable_in: AccountReceivableUpdate
    ) -> AccountReceivable:
        receivable = await self.get(ctx, receivable_id)
        update_data = receivable_in.model_dump(exclude_unset=True)
        await ensure_references(self.db, ctx, update_data.get("contact_id"), update_data.get("category_id"))
        if update_data.get("bank_account_id"):
            await self.banks.get(ctx, update_data["bank_account_id"])
        if receivable.is_paid and "amount" in update_data and Decimal(update_data["amount"]) != Decimal(receivable.amount):
            raise ValidationError("The amount of a received entry cannot change; reverse it first")

        old_values = snapshot(receivable, TRACKED_FIELDS)
        for field, value in update_data.items():
            setattr(receivable, field, value)
        self.history.log_transaction(
            ctx, "income", receivable.id, "update",
            old_values=old_values, new_values=snapshot(receivable, TRACKED_FIELDS),
        )
        await self.db.commit()
        await self.db.refresh(receivable)
        return receivable

    async def delete(self, ctx: TenantContext, receivable_id: str) -> None:
        receivable = await self.get(ctx, receivable_id)
        old_values = snapshot(receivable, TRACKED_FIELDS)
        if receivable.is_paid:
            await self._take_back(ctx, receivable)

        children = await self.db.execute(
            select(AccountReceivable).where(
                AccountReceivable.company_id == ctx.company_id,
                AccountReceivable.parent_id == receivable.id,
            )
        )
        for child in children.scalars().all():
            child.parent_id = None

        self.history.log_transaction(ctx, "income", receivable.id, "delete", old_values=old_values)
        await self.db.delete(receivable)
        await self.db.commit()
