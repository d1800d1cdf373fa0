from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.db.database import Base
from app.utils.dates import as_utc, utcnow


STATUS_ACTIVE = "active"
STATUS_REAUTH_REQUIRED = "reauth_required"


class MLIntegration(Base):
    __tablename__ = "ml_integrations"
    __table_args__ = (UniqueConstraint("company_id", "ml_user_id", name="uq_ml_integration_company_seller"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"))
    ml_user_id = Column(String(50), nullable=False)  # Seller id on Mercado Livre
    nickname = Column(String(255))
    site_id = Column(String(10), default="MLB")
    access_token = Column(String(500))
    refresh_token = Column(String(500))
    access_token_expires_at = Column(DateTime(timezone=True))
    status = Column(String(50), default="active")  # 'active', 'reauth_required'
    connected_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True))  # connected_at + validity window
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    listings = relationship("MLListing", back_populates="integration", cascade="all, delete-orphan")

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return as_utc(self.expires_at) < (now or utcnow())

    def is_usable(self) -> bool:
        return self.status == STATUS_ACTIVE and not self.is_expired()

    @property
    def status_calc(self) -> str:
        return "expired" if self.is_expired() else (self.status or "active")

    @property
    def days_remaining(self) -> int:
        if self.expires_at is None:
            return 0
        return max((as_utc(self.expires_at) - utcnow()).days, 0)
