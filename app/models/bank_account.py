from sqlalchemy import Column, String, Boolean, DateTime, DECIMAL, ForeignKey
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    bank_name = Column(String(255))
    agency = Column(String(20))
    account_number = Column(String(50))
    initial_balance = Column(DECIMAL(12, 2), default=0)
    current_balance = Column(DECIMAL(12, 2), default=0)
    overdraft_limit = Column(DECIMAL(12, 2), default=0)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
