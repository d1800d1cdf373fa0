from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, DECIMAL, ForeignKey
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class RecurringTransaction(Base):
    __tablename__ = "recurring_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # 'expense', 'income'
    recurrence_type = Column(String(20), nullable=False)  # 'monthly', 'installment'
    description = Column(String(500), nullable=False)
    amount = Column(DECIMAL(12, 2), nullable=False)
    person_name = Column(String(255))
    contact_id = Column(String(36), ForeignKey("contacts.id"))
    category_id = Column(String(36), ForeignKey("finance_categories.id"))
    bank_account_id = Column(String(36), ForeignKey("bank_accounts.id"))
    payment_method = Column(String(50))
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    day_of_month = Column(Integer)
    total_installments = Column(Integer)
    current_installment = Column(Integer, default=0)
    last_generated_date = Column(Date)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
