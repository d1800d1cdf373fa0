from sqlalchemy import Column, String, Text, Integer, Boolean, Date, DateTime, DECIMAL, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class AccountPayable(Base):
    __tablename__ = "accounts_payable"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    amount = Column(DECIMAL(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    competence_date = Column(Date)
    paid_date = Column(Date)
    is_paid = Column(Boolean, default=False)
    contact_id = Column(String(36), ForeignKey("contacts.id"))
    category_id = Column(String(36), ForeignKey("finance_categories.id"))
    bank_account_id = Column(String(36), ForeignKey("bank_accounts.id"))
    payment_method = Column(String(50))
    notes = Column(Text)
    interest = Column(DECIMAL(12, 2), default=0)  # juros
    discount = Column(DECIMAL(12, 2), default=0)  # desconto
    parent_id = Column(String(36), ForeignKey("accounts_payable.id"))
    installment_number = Column(Integer)
    total_installments = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    payment_records = relationship(
        "PaymentRecord", back_populates="payable", cascade="all, delete-orphan", order_by="PaymentRecord.payment_date"
    )
    contact = relationship("Contact")
    category = relationship("FinanceCategory")
    bank_account = relationship("BankAccount")


class PaymentRecord(Base):
    """Partial payment made against a payable."""
    __tablename__ = "payment_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    payable_id = Column(String(36), ForeignKey("accounts_payable.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(DECIMAL(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    bank_account_id = Column(String(36), ForeignKey("bank_accounts.id"))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    payable = relationship("AccountPayable", back_populates="payment_records")
