from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class TransactionHistory(Base):
    __tablename__ = "transaction_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"))
    transaction_type = Column(String(20), nullable=False)  # 'income', 'expense'
    transaction_id = Column(String(36), nullable=False, index=True)
    action = Column(String(20), nullable=False)  # create, update, delete, pay, unpay, receive, reverse
    changed_fields = Column(JSON)
    old_values = Column(JSON)
    new_values = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
