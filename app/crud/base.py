from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        """
        Tenant-scoped CRUD object with default methods to Create, Read, Update, Delete.
        **Parameters**
        * `model`: A SQLAlchemy model class carrying a `company_id` column
        """
        self.model = model

    def _scoped(self, company_id: str):
        return select(self.model).where(self.model.company_id == company_id)

    async def get(self, db: AsyncSession, company_id: str, id: Any) -> Optional[ModelType]:
        """Get a single record by ID within a company"""
        result = await db.execute(self._scoped(company_id).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def create(
        self, db: AsyncSession, company_id: str, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """Create a new record owned by the company"""
        obj_in_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        db_obj = self.model(**obj_in_data, company_id=company_id)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """Update a record with the fields that were explicitly set"""
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if hasattr(db_obj, field) and field not in ("id", "company_id"):
                setattr(db_obj, field, value)

        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def remove(self, db: AsyncSession, company_id: str, *, id: Any) -> Optional[ModelType]:
        """Delete a record"""
        obj = await self.get(db, company_id, id)
        if obj:
            await db.delete(obj)
            await db.commit()
        return obj
