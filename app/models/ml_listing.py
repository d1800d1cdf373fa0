from sqlalchemy import Column, String, Integer, Boolean, DateTime, DECIMAL, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class MLListing(Base):
    __tablename__ = "ml_listings"
    __table_args__ = (
        UniqueConstraint("company_id", "integration_id", "listing_id", name="uq_ml_listing_natural_key"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    integration_id = Column(String(36), ForeignKey("ml_integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    listing_id = Column(String(50), nullable=False)  # e.g. MLB1234567890
    title = Column(String(500))
    price = Column(DECIMAL(12, 2))
    original_price = Column(DECIMAL(12, 2))
    currency_id = Column(String(10))
    available_quantity = Column(Integer, default=0)
    sold_quantity = Column(Integer, default=0)
    status = Column(String(50))  # 'active', 'paused', 'closed'
    permalink = Column(String(500))
    thumbnail = Column(String(500))
    category_id = Column(String(50))
    category_name = Column(String(255))
    sku = Column(String(255), index=True)
    listing_type_id = Column(String(50))
    condition = Column(String(50))
    has_variations = Column(Boolean, default=False)
    variations = Column(JSON)
    last_synced_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    integration = relationship("MLIntegration", back_populates="listings")
