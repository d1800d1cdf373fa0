from sqlalchemy import Column, String, Integer, DateTime, DECIMAL, ForeignKey
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class SalesRecord(Base):
    """Monthly per-SKU sales imported from marketplace reports."""
    __tablename__ = "sales_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    month_year = Column(String(7), nullable=False, index=True)  # YYYY-MM
    sku = Column(String(255), nullable=False)
    name = Column(String(255))
    units = Column(Integer, default=0)
    revenue = Column(DECIMAL(14, 2), default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
