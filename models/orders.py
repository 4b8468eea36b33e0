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


class OrderStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"
    COMPLETED = "completed"
    FAILED = "failed"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    # Registered customer or guest checkout, exactly one of the two
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    guest_email = Column(String(255), nullable=True)

    # Snapshot of the cart at checkout:
    # [{"product_id", "seller_id", "title", "price", "quantity"}, ...]
    basket = Column(JSON, nullable=False, default=list)

    # Sum of basket line totals, in cents
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="usd")

    status = Column(
        value_enum(OrderStatus, "order_status"),
        nullable=False,
        default=OrderStatus.PENDING_PAYMENT,
    )

    payment_intent_id = Column(String(255), nullable=True, unique=True)

    # Why the last split attempt failed (order quarantined until fixed)
    split_error = Column(Text, nullable=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    sub_orders = relationship(
        "SubOrder",
        back_populates="parent_order",
        order_by="SubOrder.id",
    )
