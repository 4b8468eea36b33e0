from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    DateTime,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from models import Base, value_enum


class FulfillmentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class SubOrder(Base):
    __tablename__ = "sub_orders"
    __table_args__ = (
        # One slice per seller: a duplicate webhook cannot split twice
        UniqueConstraint("parent_order_id", "seller_id", name="uq_sub_orders_parent_seller"),
    )

    id = Column(Integer, primary_key=True, index=True)

    parent_order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # The parent basket lines belonging to this seller
    items = Column(JSON, nullable=False, default=list)

    total_amount = Column(BigInteger, nullable=False)

    fulfillment_status = Column(
        value_enum(FulfillmentStatus, "fulfillment_status"),
        nullable=False,
        default=FulfillmentStatus.PENDING,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    parent_order = relationship("Order", back_populates="sub_orders")
    earning = relationship("SellerEarning", back_populates="sub_order", uselist=False)
