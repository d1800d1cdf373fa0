"""
Audit trail of payable and receivable changes
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tenant import TenantContext
from app.models.account_payable import AccountPayable
from app.models.account_receivable import AccountReceivable
from app.models.transaction_history import TransactionHistory

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("income", "expense")
ACTIONS = ("create", "update", "delete", "pay", "unpay", "receive", "reverse")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def snapshot(obj: Any, fields: List[str]) -> Dict[str, Any]:
    return {field: _jsonable(getattr(obj, field, None)) for field in fields}


class TransactionHistoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def log_transaction(
        self,
        ctx: TenantContext,
        transaction_type: str,
        transaction_id: str,
        action: str,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> TransactionHistory:
        """
        Stage a history entry in the caller's transaction; it is committed
        together with the change it describes.
        """
        if transaction_type not in TRANSACTION_TYPES:
            raise ValueError(f"Unknown transaction type: {transaction_type}")
        if action not in ACTIONS:
            raise ValueError(f"Unknown action: {action}")

        changed_fields = None
        if old_values is not None and new_values is not None:
            changed_fields = [key for key in new_values if old_values.get(key) != new_values.get(key)]

        entry = TransactionHistory(
            company_id=ctx.company_id,
            user_id=ctx.user_id,
            transaction_type=transaction_type,
            transaction_id=transaction_id,
            action=action,
            changed_fields=changed_fields,
            old_values=old_values,
            new_values=new_values,
        )
        self.db.add(entry)
        logger.debug(f"History {transaction_type}/{action} staged for {transaction_id}")
        return entry

    async def list(
        self,
        ctx: TenantContext,
        transaction_type: Optional[str] = None,
        transaction_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        payable_description = (
            select(AccountPayable.description)
            .where(AccountPayable.id == TransactionHistory.transaction_id)
            .scalar_subquery()
        )
        receivable_description = (
            select(func.coalesce(AccountReceivable.description, AccountReceivable.customer_name))
            .where(AccountReceivable.id == TransactionHistory.transaction_id)
            .scalar_subquery()
        )
        stmt = (
            select(
                TransactionHistory,
                func.coalesce(payable_description, receivable_description).label("description"),
            )
            .where(TransactionHistory.company_id == ctx.company_id)
            .order_by(TransactionHistory.created_at.desc())
        )
        if transaction_type:
            stmt = stmt.where(TransactionHistory.transaction_type == transaction_type)
        if transaction_id:
            stmt = stmt.where(TransactionHistory.transaction_id == transaction_id)

        result = await self.db.execute(stmt.offset(skip).limit(limit))
        entries = []
        for entry, description in result.all():
            entries.append({
                "id": entry.id,
                "transaction_type": entry.transaction_type,
                "transaction_id": entry.transaction_id,
                "action": entry.action,
                "changed_fields": entry.changed_fields,
                "old_values": entry.old_values,
                "new_values": entry.new_values,
                "user_id": entry.user_id,
                "description": description,
                "created_at": entry.created_at,
            })
        return entries
