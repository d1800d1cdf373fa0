from sqlalchemy import Column, String, Text, Boolean, Date, DateTime, DECIMAL, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class AccountReceivable(Base):
    __tablename__ = "accounts_receivable"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    description = Column(String(500))
    amount = Column(DECIMAL(12, 2), nullable=False)
    receipt_date = Column(Date, nullable=False)
    competence_date = Column(Date)
    paid_date = Column(Date)
    is_paid = Column(Boolean, default=False)
    contact_id = Column(String(36), ForeignKey("contacts.id"))
    category_id = Column(String(36), ForeignKey("finance_categories.id"))
    bank_account_id = Column(String(36), ForeignKey("bank_accounts.id"))
    payment_method = Column(String(50))
    notes = Column(Text)
    interest = Column(DECIMAL(12, 2), default=0)
    discount = Column(DECIMAL(12, 2), default=0)
    parent_id = Column(String(36), ForeignKey("accounts_receivable.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    contact = relationship("Contact")
    category = relationship("FinanceCategory")
    bank_account = relationship("BankAccount")
