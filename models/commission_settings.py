from sqlalchemy import Column, Integer, BigInteger, Numeric, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func

from models import Base


class CommissionSettings(Base):
    __tablename__ = "commission_settings"

    id = Column(Integer, primary_key=True, index=True)

    # Percentage (es. 15.00)
    default_rate = Column(Numeric(5, 2), nullable=False)

    # {"<seller_id>": 12.5} overrides the default for single sellers
    seller_custom_rates = Column(JSON, nullable=False, default=dict)

    # Card processor fee passed through to the seller (0 / 0 = absorbed)
    processing_fee_pct = Column(Numeric(5, 3), nullable=False, default=0)
    processing_fee_fixed = Column(BigInteger, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)

    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
