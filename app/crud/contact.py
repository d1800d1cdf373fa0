from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from app.crud.base import CRUDBase
from app.models.contact import Contact
from app.schemas.contact import ContactCreate, ContactUpdate


class CRUDContact(CRUDBase[Contact, ContactCreate, ContactUpdate]):

    async def search(
        self,
        db: AsyncSession,
        company_id: str,
        *,
        contact_type: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Contact]:
        """Active contacts, optionally filtered by type and name/document/email"""
        stmt = (
            select(Contact)
            .where(Contact.company_id == company_id, Contact.is_active.is_(True))
            .order_by(Contact.name)
        )
        if contact_type:
            stmt = stmt.where(Contact.contact_type == contact_type)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(
                Contact.name.ilike(pattern),
                Contact.document.ilike(pattern),
                Contact.email.ilike(pattern),
            ))
        result = await db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all())


contact_crud = CRUDContact(Contact)
