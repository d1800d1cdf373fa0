from .contact import contact_crud
from .finance_category import finance_category_crud
from .recurring_transaction import recurring_transaction_crud
from .ml_integration import ml_integration_crud

__all__ = ["contact_crud", "finance_category_crud", "recurring_transaction_crud", "ml_integration_crud"]
