"""
Tenant context resolution.

Every tenant-scoped service call receives a TenantContext explicitly; nothing
reads the company from request state.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_user
from app.db.database import get_db
from app.models.company import UserCompany


@dataclass(frozen=True)
class TenantContext:
    user_id: str
    company_id: str


async def resolve_company_id(
    db: AsyncSession, user_id: str, requested_company_id: Optional[str] = None
) -> Optional[str]:
    """Return the company the user acts on: the requested one if a member, else the default."""
    if requested_company_id:
        result = await db.execute(
            select(UserCompany.company_id).where(
                UserCompany.user_id == user_id,
                UserCompany.company_id == requested_company_id,
            )
        )
        return result.scalar_one_or_none()

    result = await db.execute(
        select(UserCompany.company_id)
        .where(UserCompany.user_id == user_id, UserCompany.is_default.is_(True))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_tenant_context(
    current_user: str = Depends(get_current_user),
    x_company_id: Optional[str] = Header(None, alias="X-Company-Id"),
    db: AsyncSession = Depends(get_db)
) -> TenantContext:
    company_id = await resolve_company_id(db, current_user, x_company_id)
    if not company_id:
        detail = "Access to this company is not allowed" if x_company_id else "Company context not found"
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return TenantContext(user_id=current_user, company_id=company_id)
