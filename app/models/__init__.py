from .user import User
from .company import Company, UserCompany
from .ml_integration import MLIntegration
from .ml_listing import MLListing
from .ml_connection_token import MLConnectionToken
from .product import Product, KitItem, DynamicItem
from .product_listing_mapping import ProductListingMapping
from .sales_record import SalesRecord
from .bank_account import BankAccount
from .contact import Contact
from .finance_category import FinanceCategory
from .account_payable import AccountPayable, PaymentRecord
from .account_receivable import AccountReceivable
from .recurring_transaction import RecurringTransaction
from .transaction_history import TransactionHistory

__all__ = [
    "User",
    "Company",
    "UserCompany",
    "MLIntegration",
    "MLListing",
    "MLConnectionToken",
    "Product",
    "KitItem",
    "DynamicItem",
    "ProductListingMapping",
    "SalesRecord",
    "BankAccount",
    "Contact",
    "FinanceCategory",
    "AccountPayable",
    "PaymentRecord",
    "AccountReceivable",
    "RecurringTransaction",
    "TransactionHistory"
]
