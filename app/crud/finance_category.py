from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func

from app.crud.base import CRUDBase
from app.models.finance_category import FinanceCategory
from app.schemas.finance_category import FinanceCategoryCreate, FinanceCategoryUpdate

DEFAULT_CATEGORIES = [
    # Receitas Operacionais
    {"name": "Descontos Concedidos", "type": "despesa", "group_name": "Receitas Operacionais"},
    {"name": "Juros Recebidos", "type": "receita", "group_name": "Receitas Operacionais"},
    {"name": "Multas Recebidas", "type": "receita", "group_name": "Receitas Operacionais"},
    {"name": "Outras receitas", "type": "receita", "group_name": "Receitas Operacionais"},
    {"name": "Vendas de produtos", "type": "receita", "group_name": "Receitas Operacionais"},
    {"name": "Vendas de serviços", "type": "receita", "group_name": "Receitas Operacionais"},
    # Custos Operacionais
    {"name": "Compras de fornecedores", "type": "despesa", "group_name": "Custos Operacionais"},
    {"name": "Custo serviço prestado", "type": "despesa", "group_name": "Custos Operacionais"},
    {"name": "Custos produto vendido", "type": "despesa", "group_name": "Custos Operacionais"},
    {"name": "Impostos sobre receita", "type": "despesa", "group_name": "Custos Operacionais"},
    {"name": "Compras - Embalagens", "type": "despesa", "group_name": "Custos Operacionais"},
    {"name": "Frete sobre Compras", "type": "despesa", "group_name": "Custos Operacionais"},
    # Despesas Operacionais e Outras Receitas
    {"name": "Aluguel e condomínio", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Descontos Recebidos", "type": "receita", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Juros Pagos", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Luz, água e outros", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Material de escritório", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Multas Pagas", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Outras despesas", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Salários, encargos e benefícios", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Tarifas bancárias", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
    {"name": "Marketing e publicidade", "type": "despesa", "group_name": "Despesas Operacionais e Outras Receitas"},
]


class CRUDFinanceCategory(CRUDBase[FinanceCategory, FinanceCategoryCreate, FinanceCategoryUpdate]):

    async def list_ordered(self, db: AsyncSession, company_id: str) -> List[FinanceCategory]:
        result = await db.execute(
            self._scoped(company_id).order_by(
                FinanceCategory.type, FinanceCategory.group_name, FinanceCategory.display_order, FinanceCategory.name
            )
        )
        return list(result.scalars().all())

    async def seed_defaults(self, db: AsyncSession, company_id: str) -> int:
        """Insert the native category set; caller commits"""
        for position, category in enumerate(DEFAULT_CATEGORIES):
            db.add(FinanceCategory(company_id=company_id, is_native=True, display_order=position, **category))
        await db.flush()
        return len(DEFAULT_CATEGORIES)

    async def ensure_seeded(self, db: AsyncSession, company_id: str) -> None:
        result = await db.execute(
            select(func.count(FinanceCategory.id)).where(FinanceCategory.company_id == company_id)
        )
        if not result.scalar():
            await self.seed_defaults(db, company_id)
            await db.commit()

    async def restore_defaults(self, db: AsyncSession, company_id: str) -> int:
        """Drop every category of the company and re-seed the native set"""
        await db.execute(delete(FinanceCategory).where(FinanceCategory.company_id == company_id))
        count = await self.seed_defaults(db, company_id)
        await db.commit()
        return count


finance_category_crud = CRUDFinanceCategory(FinanceCategory)
