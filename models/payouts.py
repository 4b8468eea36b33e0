from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    Text,
    DateTime,
    ForeignKey,
    JSON,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from models import Base, value_enum


class PayoutMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    STRIPE_CONNECT = "stripe_connect"


class PayoutStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class Payout(Base):
    """
    Seller withdrawal request.
    Funds are reserved on the seller earnings when the request is created
    (see PayoutItem) and become paid when an admin approves it.
    """
    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True, index=True)

    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Cents
    amount = Column(BigInteger, nullable=False)

    method = Column(value_enum(PayoutMethod, "payout_method"), nullable=False)
    account_details = Column(JSON, nullable=False, default=dict)

    status = Column(
        value_enum(PayoutStatus, "payout_status"),
        nullable=False,
        default=PayoutStatus.PENDING_APPROVAL,
        index=True,
    )

    failure_reason = Column(Text, nullable=True)

    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Stripe transfer id / bank reference once the money has moved
    transfer_reference = Column(String(255), nullable=True)

    items = relationship(
        "PayoutItem",
        back_populates="payout",
        order_by="PayoutItem.id",
        cascade="all, delete-orphan",
    )


class PayoutItem(Base):
    """How much of one earning a payout consumes."""
    __tablename__ = "payout_items"

    id = Column(Integer, primary_key=True, index=True)

    payout_id = Column(Integer, ForeignKey("payouts.id", ondelete="CASCADE"), nullable=False, index=True)
    earning_id = Column(Integer, ForeignKey("seller_earnings.id"), nullable=False, index=True)

    amount = Column(BigInteger, nullable=False)

    payout = relationship("Payout", back_populates="items")
    earning = relationship("SellerEarning")
