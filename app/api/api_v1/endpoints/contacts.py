from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.crud.contact import contact_crud
from app.schemas.contact import ContactCreate, ContactUpdate, ContactResponse, ContactSummaryResponse
from app.services.contact_service import ContactService

router = APIRouter()


@router.get("/", response_model=List[ContactSummaryResponse])
async def get_contacts(
    contact_type: Optional[str] = Query(None, description="cliente, fornecedor, funcionario or socio"),
    search: Optional[str] = Query(None, description="Search name, document or email"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """
    List active contacts with their financial summary:
    - **em_aberto**: open receivables and payables
    - **vencido**: the overdue part of the open amount
    - **movimentado**: settled total
    """
    return await ContactService(db).list_with_summary(
        ctx, contact_type=contact_type, search=search, skip=skip, limit=limit
    )


@router.post("/", response_model=ContactResponse, status_code=201)
async def create_contact(
    contact_in: ContactCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    data = contact_in.model_dump()
    data["is_active"] = True
    return await contact_crud.create(db, ctx.company_id, obj_in=data)


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    contact = await contact_crud.get(db, ctx.company_id, contact_id)
    if not contact or not contact.is_active:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


@router.put("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: str,
    contact_in: ContactUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    contact = await contact_crud.get(db, ctx.company_id, contact_id)
    if not contact or not contact.is_active:
        raise HTTPException(status_code=404, detail="Contact not found")
    return await contact_crud.update(db, db_obj=contact, obj_in=contact_in)


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete; transactions keep pointing at the contact."""
    contact = await contact_crud.get(db, ctx.company_id, contact_id)
    if not contact or not contact.is_active:
        raise HTTPException(status_code=404, detail="Contact not found")
    await contact_crud.update(db, db_obj=contact, obj_in={"is_active": False})
    return {"success": True}
