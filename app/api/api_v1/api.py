from fastapi import APIRouter

from app.api.api_v1.endpoints import (
    auth,
    bank_accounts,
    payables,
    receivables,
    contacts,
    categories,
    recurring,
    transaction_history,
    products,
    product_analytics,
    product_ml_mapping,
    mercadolivre,
    ml_items
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(bank_accounts.router, prefix="/bank-accounts", tags=["bank-accounts"])
api_router.include_router(payables.router, prefix="/accounts-payable", tags=["accounts-payable"])
api_router.include_router(receivables.router, prefix="/accounts-receivable", tags=["accounts-receivable"])
api_router.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(recurring.router, prefix="/recurring-transactions", tags=["recurring-transactions"])
api_router.include_router(transaction_history.router, prefix="/transaction-history", tags=["transaction-history"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(product_analytics.router, prefix="/product-analytics", tags=["product-analytics"])
api_router.include_router(product_ml_mapping.router, prefix="/product-ml-mapping", tags=["product-ml-mapping"])
api_router.include_router(mercadolivre.router, prefix="/integrations/mercadolivre", tags=["mercadolivre-integrations"])
api_router.include_router(ml_items.router, prefix="/mercadolivre", tags=["mercadolivre"])
