from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    Numeric,
    DateTime,
    ForeignKey,
    CheckConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from models import Base, value_enum


class EarningStatus(str, enum.Enum):
    PENDING = "pending"      # holding period running
    AVAILABLE = "available"  # withdrawable (possibly partly reserved)
    PAID = "paid"            # fully paid out
    REFUNDED = "refunded"    # whole net reversed by refunds


class SellerEarning(Base):
    __tablename__ = "seller_earnings"
    __table_args__ = (
        CheckConstraint("net_amount >= 0", name="ck_seller_earnings_net_non_negative"),
        CheckConstraint("refunded_amount >= 0", name="ck_seller_earnings_refunded_non_negative"),
        CheckConstraint(
            "reserved_amount >= 0 AND paid_amount >= 0 "
            "AND reserved_amount + paid_amount <= net_amount",
            name="ck_seller_earnings_ledger_bounds",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Lookup references only
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    sub_order_id = Column(Integer, ForeignKey("sub_orders.id"), nullable=False, unique=True)

    # All amounts in cents
    gross_amount = Column(BigInteger, nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=False)
    commission_amount = Column(BigInteger, nullable=False)
    processing_fee = Column(BigInteger, nullable=False, default=0)
    net_amount = Column(BigInteger, nullable=False)
    # Part of the original net taken back by refunds
    refunded_amount = Column(BigInteger, nullable=False, default=0)

    # Part of net_amount locked by payouts awaiting approval
    reserved_amount = Column(BigInteger, nullable=False, default=0)
    # Part of net_amount already paid out
    paid_amount = Column(BigInteger, nullable=False, default=0)

    status = Column(
        value_enum(EarningStatus, "earning_status"),
        nullable=False,
        default=EarningStatus.PENDING,
        index=True,
    )

    available_date = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    sub_order = relationship("SubOrder", back_populates="earning")

    @property
    def unreserved_amount(self) -> int:
        return int(self.net_amount) - int(self.reserved_amount or 0) - int(self.paid_amount or 0)
