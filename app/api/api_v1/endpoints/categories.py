from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.core.tenant import TenantContext, get_tenant_context
from app.crud.finance_category import finance_category_crud
from app.schemas.finance_category import FinanceCategoryCreate, FinanceCategoryUpdate, FinanceCategoryResponse

router = APIRouter()


async def _get_editable(db: AsyncSession, ctx: TenantContext, category_id: str):
    category = await finance_category_crud.get(db, ctx.company_id, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    if category.is_native:
        raise HTTPException(status_code=400, detail="Native categories cannot be changed")
    return category


@router.get("/", response_model=List[FinanceCategoryResponse])
async def get_categories(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """List categories; the native set is created on first access."""
    await finance_category_crud.ensure_seeded(db, ctx.company_id)
    return await finance_category_crud.list_ordered(db, ctx.company_id)


@router.post("/", response_model=FinanceCategoryResponse, status_code=201)
async def create_category(
    category_in: FinanceCategoryCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    data = category_in.model_dump()
    data["is_native"] = False
    return await finance_category_crud.create(db, ctx.company_id, obj_in=data)


@router.post("/restore")
async def restore_categories(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Remove custom categories and re-create the native set."""
    count = await finance_category_crud.restore_defaults(db, ctx.company_id)
    return {"success": True, "restored": count}


@router.put("/{category_id}", response_model=FinanceCategoryResponse)
async def update_category(
    category_id: str,
    category_in: FinanceCategoryUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    category = await _get_editable(db, ctx, category_id)
    return await finance_category_crud.update(db, db_obj=category, obj_in=category_in)


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    await _get_editable(db, ctx, category_id)
    await finance_category_crud.remove(db, ctx.company_id, id=category_id)
    return {"success": True}
