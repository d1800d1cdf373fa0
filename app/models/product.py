from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, DECIMAL, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.db.database import Base

PRODUCT_TYPES = ("simple", "kit", "dynamic")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (UniqueConstraint("company_id", "sku", name="uq_product_company_sku"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    product_type = Column(String(20), nullable=False, default="simple")  # 'simple', 'kit', 'dynamic'
    description = Column(Text)
    brand = Column(String(255))
    category = Column(String(255))
    barcode = Column(String(64))
    sale_price = Column(DECIMAL(12, 2), default=0)
    cost_price = Column(DECIMAL(12, 2), default=0)
    stock = Column(Integer, default=0)
    image_url = Column(String(500))
    is_active = Column(Boolean, default=True)
    is_deleted = Column(Boolean, default=False)
    deleted_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    kit_items = relationship(
        "KitItem",
        foreign_keys="KitItem.kit_id",
        back_populates="kit",
        cascade="all, delete-orphan",
    )
    dynamic_items = relationship(
        "DynamicItem",
        foreign_keys="DynamicItem.dynamic_id",
        back_populates="dynamic",
        cascade="all, delete-orphan",
    )


class KitItem(Base):
    __tablename__ = "product_kit_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    kit_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)

    # Relationships
    kit = relationship("Product", foreign_keys=[kit_id], back_populates="kit_items")
    component = relationship("Product", foreign_keys=[component_id])


class DynamicItem(Base):
    """Interchangeable product: any component can be shipped for the dynamic SKU."""
    __tablename__ = "product_dynamic_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    dynamic_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)

    # Relationships
    dynamic = relationship("Product", foreign_keys=[dynamic_id], back_populates="dynamic_items")
    component = relationship("Product", foreign_keys=[component_id])
