"""
Contact listing with open, overdue and settled totals
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tenant import TenantContext
from app.crud.contact import contact_crud
from app.models.account_payable import AccountPayable, PaymentRecord
from app.models.account_receivable import AccountReceivable
from app.utils.dates import today_in_tz

logger = logging.getLogger(__name__)


class ContactService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _receivable_totals(self, ctx: TenantContext, contact_ids: List[str], totals: Dict[str, dict]) -> None:
        today = today_in_tz()
        result = await self.db.execute(
            select(
                AccountReceivable.contact_id,
                AccountReceivable.is_paid,
                AccountReceivable.receipt_date,
                func.sum(AccountReceivable.amount),
            )
            .where(
                AccountReceivable.company_id == ctx.company_id,
                AccountReceivable.contact_id.in_(contact_ids),
            )
            .group_by(AccountReceivable.contact_id, AccountReceivable.is_paid, AccountReceivable.receipt_date)
        )
        for contact_id, is_paid, receipt_date, amount in result.all():
            self._accumulate(totals[contact_id], bool(is_paid), receipt_date < today, Decimal(amount or 0))

    async def _payable_totals(self, ctx: TenantContext, contact_ids: List[str], totals: Dict[str, dict]) -> None:
        today = today_in_tz()
        partials = (
            select(PaymentRecord.payable_id, func.sum(PaymentRecord.amount).label("paid"))
            .group_by(PaymentRecord.payable_id)
            .subquery()
        )
        result = await self.db.execute(
            select(
                AccountPayable.contact_id,
                AccountPayable.is_paid,
                AccountPayable.due_date,
                func.sum(AccountPayable.amount),
                func.sum(func.coalesce(partials.c.paid, 0)),
            )
            .outerjoin(partials, partials.c.payable_id == AccountPayable.id)
            .where(
                AccountPayable.company_id == ctx.company_id,
                AccountPayable.contact_id.in_(contact_ids),
            )
            .group_by(AccountPayable.contact_id, AccountPayable.is_paid, AccountPayable.due_date)
        )
        for contact_id, is_paid, due_date, amount, partial_paid in result.all():
            amount = Decimal(amount or 0)
            partial_paid = Decimal(partial_paid or 0)
            if is_paid:
                self._accumulate(totals[contact_id], True, False, amount)
            else:
                self._accumulate(totals[contact_id], False, due_date < today, amount - partial_paid)
                totals[contact_id]["movimentado"] += partial_paid

    @staticmethod
    def _accumulate(bucket: dict, is_paid: bool, overdue: bool, amount: Decimal) -> None:
        if is_paid:
            bucket["movimentado"] += amount
            return
        bucket["em_aberto"] += amount
        if overdue:
            bucket["vencido"] += amount

    async def list_with_summary(
        self,
        ctx: TenantContext,
        contact_type: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[dict]:
        contacts = await contact_crud.search(
            self.db, ctx.company_id, contact_type=contact_type, search=search, skip=skip, limit=limit
        )
        if not contacts:
            return []

        contact_ids = [contact.id for contact in contacts]
        totals: Dict[str, dict] = defaultdict(
            lambda: {"em_aberto": Decimal("0"), "vencido": Decimal("0"), "movimentado": Decimal("0")}
        )
        await self._receivable_totals(ctx, contact_ids, totals)
        await self._payable_totals(ctx, contact_ids, totals)

        summaries = []
        for contact in contacts:
            data = {column.name: getattr(contact, column.name) for column in contact.__table__.columns}
            data.update(totals[contact.id])
            summaries.append(data)
        return summaries
