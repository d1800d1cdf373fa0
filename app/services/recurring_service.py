"""
Recurring transaction rules and their materialization into payables/receivables
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.core.tenant import TenantContext
from app.crud.recurring_transaction import recurring_transaction_crud
from app.models.account_payable import AccountPayable
from app.models.account_receivable import AccountReceivable
from app.models.recurring_transaction import RecurringTransaction
from app.schemas.recurring_transaction import RecurringTransactionCreate, RecurringTransactionUpdate
from app.services.payable_service import ensure_references, split_installments
from app.services.transaction_history_service import TransactionHistoryService
from app.utils.dates import add_months, today_in_tz

logger = logging.getLogger(__name__)


def monthly_due_dates(rule: RecurringTransaction, today: date) -> List[date]:
    """
    Due dates not generated yet, up to today and the rule's end date.
    The day of month is clamped to the month length (31 becomes 28/29 in February).
    """
    day = rule.day_of_month or rule.start_date.day
    if rule.last_generated_date:
        candidate = add_months(rule.last_generated_date, 1, day=day)
    else:
        candidate = add_months(rule.start_date, 0, day=day)
        if candidate < rule.start_date:
            candidate = add_months(rule.start_date, 1, day=day)

    limit = min(today, rule.end_date) if rule.end_date else today
    dates = []
    while candidate <= limit:
        dates.append(candidate)
        candidate = add_months(candidate, 1, day=day)
    return dates


def installment_due_dates(rule: RecurringTransaction, today: date) -> List[tuple]:
    """(number, due date) of installments due by today and not generated yet"""
    day = rule.day_of_month or rule.start_date.day
    total = rule.total_installments or 0
    due = []
    for number in range((rule.current_installment or 0) + 1, total + 1):
        due_date = add_months(rule.start_date, number - 1, day=day)
        if due_date > today:
            break
        due.append((number, due_date))
    return due


class RecurringService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.history = TransactionHistoryService(db)

    async def get(self, ctx: TenantContext, rule_id: str) -> RecurringTransaction:
        rule = await recurring_transaction_crud.get(self.db, ctx.company_id, rule_id)
        if not rule:
            raise NotFoundError("Recurring transaction not found")
        return rule

    async def create(self, ctx: TenantContext, rule_in: RecurringTransactionCreate) -> RecurringTransaction:
        await ensure_references(self.db, ctx, rule_in.contact_id, rule_in.category_id)
        data = rule_in.model_dump()
        data.update(current_installment=0, is_active=True)
        return await recurring_transaction_crud.create(self.db, ctx.company_id, obj_in=data)

    async def update(
        self, ctx: TenantContext, rule_id: str, rule_in: RecurringTransactionUpdate
    ) -> RecurringTransaction:
        rule = await self.get(ctx, rule_id)
        update_data = rule_in.model_dump(exclude_unset=True)
        await ensure_references(self.db, ctx, update_data.get("contact_id"), update_data.get("category_id"))
        return await recurring_transaction_crud.update(self.db, db_obj=rule, obj_in=update_data)

    async def toggle(self, ctx: TenantContext, rule_id: str) -> RecurringTransaction:
        rule = await self.get(ctx, rule_id)
        return await recurring_transaction_crud.update(self.db, db_obj=rule, obj_in={"is_active": not rule.is_active})

    async def delete(self, ctx: TenantContext, rule_id: str) -> None:
        await self.get(ctx, rule_id)
        await recurring_transaction_crud.remove(self.db, ctx.company_id, id=rule_id)

    def _materialize(self, ctx: TenantContext, rule: RecurringTransaction, description: str,
                     amount: Decimal, due_date: date):
        common = dict(
            company_id=ctx.company_id,
            description=description,
            amount=amount,
            competence_date=due_date,
            contact_id=rule.contact_id,
            category_id=rule.category_id,
            bank_account_id=rule.bank_account_id,
            payment_method=rule.payment_method,
            is_paid=False,
            interest=Decimal("0"),
            discount=Decimal("0"),
        )
        if rule.type == "expense":
            entry = AccountPayable(due_date=due_date, **common)
        else:
            entry = AccountReceivable(
                receipt_date=due_date, customer_name=rule.person_name or rule.description, **common
            )
        self.db.add(entry)
        return entry

    async def generate(self, ctx: TenantContext, today: Optional[date] = None) -> int:
        """Create the payables/receivables that active rules owe up to today"""
        today = today or today_in_tz()
        rules = await recurring_transaction_crud.get_active(self.db, ctx.company_id)
        entries = []

        for rule in rules:
            if rule.recurrence_type == "monthly":
                dates = monthly_due_dates(rule, today)
                for due_date in dates:
                    entries.append(self._materialize(ctx, rule, rule.description, Decimal(rule.amount), due_date))
                if dates:
                    rule.last_generated_date = dates[-1]
                if rule.end_date and rule.end_date <= today:
                    rule.is_active = False
            elif rule.recurrence_type == "installment":
                total = rule.total_installments or 1
                amounts = split_installments(Decimal(rule.amount), total)
                for number, due_date in installment_due_dates(rule, today):
                    entries.append(self._materialize(
                        ctx, rule, f"{rule.description} ({number}/{total})", amounts[number - 1], due_date
                    ))
                    rule.current_installment = number
                    rule.last_generated_date = due_date
                if (rule.current_installment or 0) >= total:
                    rule.is_active = False

        await self.db.flush()
        for entry in entries:
            transaction_type = "expense" if isinstance(entry, AccountPayable) else "income"
            self.history.log_transaction(
                ctx, transaction_type, entry.id, "create",
                new_values={"description": entry.description, "amount": float(entry.amount)},
            )
        await self.db.commit()
        logger.info(f"Generated {len(entries)} transactions from recurring rules of company {ctx.company_id}")
        return len(entries)

    async def list(self, ctx: TenantContext) -> List[RecurringTransaction]:
        return await recurring_transaction_crud.list_all(self.db, ctx.company_id)
