from sqlalchemy import Column, Integer, BigInteger, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from models import Base


class PayoutSettings(Base):
    __tablename__ = "payout_settings"

    id = Column(Integer, primary_key=True, index=True)

    holding_period_days = Column(Integer, nullable=False)

    # Cents
    minimum_payout_amount = Column(BigInteger, nullable=False)
    maximum_payout_amount = Column(BigInteger, nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)

    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
