from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class ProductListingMapping(Base):
    __tablename__ = "product_ml_mappings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    product_sku = Column(String(255), nullable=False)
    integration_id = Column(String(36), ForeignKey("ml_integrations.id", ondelete="CASCADE"), nullable=False)
    listing_id = Column(String(50), nullable=False, index=True)
    variation_id = Column(String(50))  # None maps the whole listing
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    product = relationship("Product")


# One SKU per (listing, variation); a NULL variation counts as a value of its own
Index(
    "uq_product_ml_mapping_listing_variation",
    ProductListingMapping.company_id,
    ProductListingMapping.listing_id,
    func.coalesce(ProductListingMapping.variation_id, ""),
    unique=True,
)
