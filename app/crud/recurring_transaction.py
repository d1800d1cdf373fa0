from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.recurring_transaction import RecurringTransaction
from app.schemas.recurring_transaction import RecurringTransactionCreate, RecurringTransactionUpdate


class CRUDRecurringTransaction(CRUDBase[RecurringTransaction, RecurringTransactionCreate, RecurringTransactionUpdate]):

    async def get_active(self, db: AsyncSession, company_id: str) -> List[RecurringTransaction]:
        result = await db.execute(
            self._scoped(company_id)
            .where(RecurringTransaction.is_active.is_(True))
            .order_by(RecurringTransaction.created_at)
        )
        return list(result.scalars().all())

    async def list_all(self, db: AsyncSession, company_id: str) -> List[RecurringTransaction]:
        result = await db.execute(
            self._scoped(company_id).order_by(
                RecurringTransaction.is_active.desc(), RecurringTransaction.created_at.desc()
            )
        )
        return list(result.scalars().all())


recurring_transaction_crud = CRUDRecurringTransaction(RecurringTransaction)
