"""
Accounts payable: installments, full and partial payments, bank movements
"""

import logging
from datetime import date
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import NotFoundError, ValidationError
from app.core.tenant import TenantContext
from app.crud.contact import contact_crud
from app.crud.finance_category import finance_category_crud
from app.models.account_payable import AccountPayable, PaymentRecord
from app.schemas.payable import (
    AccountPayableCreate, AccountPayableUpdate, PayRequest, MakePaymentRequest
)
from app.services.bank_account_service import BankAccountService
from app.services.transaction_history_service import TransactionHistoryService, snapshot
from app.utils.dates import add_months, today_in_tz

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
TRACKED_FIELDS = [
    "description", "amount", "due_date", "competence_date", "paid_date", "is_paid",
    "contact_id", "category_id", "bank_account_id", "payment_method", "notes",
    "interest", "discount",
]


def split_installments(total: Decimal, count: int) -> List[Decimal]:
    """Equal cents per installment; the last one absorbs the rounding remainder"""
    base = (Decimal(total) / count).quantize(CENT, rounding=ROUND_DOWN)
    return [base] * (count - 1) + [Decimal(total) - base * (count - 1)]


def records_total(payable: AccountPayable) -> Decimal:
    return sum((Decimal(record.amount) for record in payable.payment_records), Decimal("0"))


def outstanding(payable: AccountPayable) -> Decimal:
    if payable.is_paid:
        return Decimal("0")
    return max(Decimal(payable.amount) - records_total(payable), Decimal("0"))


def paid_amount(payable: AccountPayable) -> Decimal:
    if payable.is_paid:
        return Decimal(payable.amount) + Decimal(payable.interest or 0) - Decimal(payable.discount or 0)
    return records_total(payable)


def settlement_amount(payable: AccountPayable) -> Decimal:
    """What the final settlement took from the payable's own bank account"""
    if not payable.is_paid:
        return Decimal("0")
    return (
        Decimal(payable.amount) - records_total(payable)
        + Decimal(payable.interest or 0) - Decimal(payable.discount or 0)
    )


async def ensure_references(
    db: AsyncSession, ctx: TenantContext, contact_id: Optional[str] = None, category_id: Optional[str] = None
) -> None:
    """Contacts and categories referenced by a transaction must belong to the company"""
    if contact_id and not await contact_crud.get(db, ctx.company_id, contact_id):
        raise NotFoundError("Contact not found")
    if category_id and not await finance_category_crud.get(db, ctx.company_id, category_id):
        raise NotFoundError("Category not found")


class PayableService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.banks = BankAccountService(db)
        self.history = TransactionHistoryService(db)

    def _query(self, ctx: TenantContext):
        return (
            select(AccountPayable)
            .options(selectinload(AccountPayable.payment_records))
            .where(AccountPayable.company_id == ctx.company_id)
            .execution_options(populate_existing=True)
        )

    async def get(self, ctx: TenantContext, payable_id: str) -> AccountPayable:
        result = await self.db.execute(self._query(ctx).where(AccountPayable.id == payable_id))
        payable = result.scalar_one_or_none()
        if not payable:
            raise NotFoundError("Payable not found")
        return payable

    async def list(
        self,
        ctx: TenantContext,
        status: str = "all",
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AccountPayable]:
        stmt = self._query(ctx).order_by(AccountPayable.due_date, AccountPayable.description)
        if status == "pending":
            stmt = stmt.where(AccountPayable.is_paid.is_(False))
        elif status == "paid":
            stmt = stmt.where(AccountPayable.is_paid.is_(True))
        if due_from:
            stmt = stmt.where(AccountPayable.due_date >= due_from)
        if due_to:
            stmt = stmt.where(AccountPayable.due_date <= due_to)
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all())

    def describe(self, payable: AccountPayable, with_records: bool = False) -> dict:
        data = {column.name: getattr(payable, column.name) for column in AccountPayable.__table__.columns}
        data["paid_amount"] = paid_amount(payable)
        data["outstanding"] = outstanding(payable)
        if with_records:
            data["payment_records"] = list(payable.payment_records)
        return data

    async def _bank_for(self, ctx: TenantContext, bank_account_id: Optional[str]):
        bank = await self.banks.resolve(ctx, bank_account_id)
        if bank is None:
            raise ValidationError("No bank account given and the company has no default account")
        return bank

    async def create(self, ctx: TenantContext, payable_in: AccountPayableCreate) -> List[AccountPayable]:
        await ensure_references(self.db, ctx, payable_in.contact_id, payable_in.category_id)
        count = payable_in.total_installments
        if count > 1 and payable_in.is_paid:
            raise ValidationError("An installment plan cannot be created as paid")

        bank = await self.banks.resolve(ctx, payable_in.bank_account_id)
        base = payable_in.model_dump(exclude={"total_installments", "is_paid", "paid_date", "amount", "bank_account_id"})
        created: List[AccountPayable] = []

        if count == 1:
            payable = AccountPayable(
                company_id=ctx.company_id,
                **base,
                amount=payable_in.amount,
                bank_account_id=bank.id if bank else None,
                is_paid=False,
                interest=Decimal("0"),
                discount=Decimal("0"),
            )
            if payable_in.is_paid:
                if bank is None:
                    raise ValidationError("A bank account is required to register a paid payable")
                self.banks.debit(bank, payable_in.amount)
                payable.is_paid = True
                payable.paid_date = payable_in.paid_date or today_in_tz()
            self.db.add(payable)
            created.append(payable)
        else:
            parent_id = None
            for number, amount in enumerate(split_installments(payable_in.amount, count), start=1):
                payable = AccountPayable(
                    company_id=ctx.company_id,
                    **{**base, "description": f"{payable_in.description} ({number}/{count})",
                       "due_date": add_months(payable_in.due_date, number - 1)},
                    amount=amount,
                    bank_account_id=bank.id if bank else None,
                    is_paid=False,
                    interest=Decimal("0"),
                    discount=Decimal("0"),
                    parent_id=parent_id,
                    installment_number=number,
                    total_installments=count,
                )
                self.db.add(payable)
                await self.db.flush()
                parent_id = parent_id or payable.id
                created.append(payable)

        await self.db.flush()
        for payable in created:
            self.history.log_transaction(
                ctx, "expense", payable.id, "create", new_values=snapshot(payable, TRACKED_FIELDS)
            )
        await self.db.commit()
        logger.info(f"Created {len(created)} payable(s) for company {ctx.company_id}")
        return [await self.get(ctx, payable.id) for payable in created]

    async def pay(self, ctx: TenantContext, payable_id: str, pay_in: PayRequest) -> AccountPayable:
        payable = await self.get(ctx, payable_id)
        if payable.is_paid:
            raise ValidationError("Payable is already paid")

        old_values = snapshot(payable, TRACKED_FIELDS)
        bank = await self._bank_for(ctx, pay_in.bank_account_id or payable.bank_account_id)
        self.banks.debit(bank, outstanding(payable))

        payable.is_paid = True
        payable.paid_date = pay_in.paid_date or today_in_tz()
        payable.bank_account_id = bank.id
        self.history.log_transaction(
            ctx, "expense", payable.id, "pay", old_values=old_values, new_values=snapshot(payable, TRACKED_FIELDS)
        )
        await self.db.commit()
        return await self.get(ctx, payable.id)

    async def make_payment(self, ctx: TenantContext, payable_id: str, payment_in: MakePaymentRequest) -> AccountPayable:
        payable = await self.get(ctx, payable_id)
        if payable.is_paid:
            raise ValidationError("Payable is already paid")

        old_values = snapshot(payable, TRACKED_FIELDS)
        bank = await self._bank_for(ctx, payment_in.bank_account_id or payable.bank_account_id)
        payment_date = payment_in.payment_date or today_in_tz()
        remaining = outstanding(payable)

        if payment_in.payment_type == "total":
            due = remaining + payment_in.interest - payment_in.discount
            if due < 0:
                raise ValidationError("Discount cannot exceed the outstanding amount plus interest")
            self.banks.debit(bank, due)
            payable.interest = payment_in.interest
            payable.discount = payment_in.discount
            payable.is_paid = True
            payable.paid_date = payment_date
            payable.bank_account_id = bank.id
        else:
            if payment_in.amount > remaining:
                raise ValidationError(f"Partial payment exceeds the outstanding amount of {remaining}")
            self.banks.debit(bank, payment_in.amount)
            record = PaymentRecord(
                company_id=ctx.company_id,
                amount=payment_in.amount,
                payment_date=payment_date,
                bank_account_id=bank.id,
                notes=payment_in.notes,
            )
            payable.payment_records.append(record)
            if records_total(payable) >= Decimal(payable.amount):
                payable.is_paid = True
                payable.paid_date = payment_date

        self.history.log_transaction(
            ctx, "expense", payable.id, "pay", old_values=old_values, new_values=snapshot(payable, TRACKED_FIELDS)
        )
        await self.db.commit()
        return await self.get(ctx, payable.id)

    async def _refund(self, ctx: TenantContext, payable: AccountPayable) -> None:
        """Credit back everything paid against the payable"""
        settled = settlement_amount(payable)
        if settled > 0 and payable.bank_account_id:
            bank = await self.banks.get(ctx, payable.bank_account_id, include_inactive=True)
            self.banks.credit(bank, settled)
        for record in payable.payment_records:
            if record.bank_account_id:
                bank = await self.banks.get(ctx, record.bank_account_id, include_inactive=True)
                self.banks.credit(bank, record.amount)

    async def unpay(self, ctx: TenantContext, payable_id: str) -> AccountPayable:
        payable = await self.get(ctx, payable_id)
        if not payable.is_paid and not payable.payment_records:
            raise ValidationError("Payable has no payments to undo")

        old_values = snapshot(payable, TRACKED_FIELDS)
        await self._refund(ctx, payable)
        payable.payment_records.clear()
        payable.is_paid = False
        payable.paid_date = None
        payable.interest = Decimal("0")
        payable.discount = Decimal("0")
        self.history.log_transaction(
            ctx, "expense", payable.id, "unpay", old_values=old_values, new_values=snapshot(payable, TRACKED_FIELDS)
        )
        await self.db.commit()
        return await self.get(ctx, payable.id)

    async def update(self, ctx: TenantContext, payable_id: str, payable_in: AccountPayableUpdate) -> AccountPayable:
        payable = await self.get(ctx, payable_id)
        update_data = payable_in.model_dump(exclude_unset=True)
        await ensure_references(self.db, ctx, update_data.get("contact_id"), update_data.get("category_id"))
        if update_data.get("bank_account_id"):
            await self.banks.get(ctx, update_data["bank_account_id"])

        new_amount = update_data.get("amount")
        if new_amount is not None and Decimal(new_amount) != Decimal(payable.amount):
            if payable.is_paid:
                raise ValidationError("The amount of a paid payable cannot change; undo the payment first")
            if Decimal(new_amount) < records_total(payable):
                raise ValidationError("Amount cannot be lower than what was already paid")

        old_values = snapshot(payable, TRACKED_FIELDS)
        for field, value in update_data.items():
            setattr(payable, field, value)
        self.history.log_transaction(
            ctx, "expense", payable.id, "update", old_values=old_values, new_values=snapshot(payable, TRACKED_FIELDS)
        )
        await self.db.commit()
        return await self.get(ctx, payable.id)

    async def delete(self, ctx: TenantContext, payable_id: str) -> None:
        payable = await self.get(ctx, payable_id)
        old_values = snapshot(payable, TRACKED_FIELDS)
        await self._refund(ctx, payable)

        # Later installments keep existing without their parent
        await self.db.execute(
            update(AccountPayable)
            .where(AccountPayable.company_id == ctx.company_id, AccountPayable.parent_id == payable.id)
            .values(parent_id=None)
        )
        self.history.log_transaction(ctx, "expense", payable.id, "delete", old_values=old_values)
        await self.db.delete(payable)
        await self.db.commit()
        logger.info(f"Deleted payable {payable_id} of company {ctx.company_id}")
