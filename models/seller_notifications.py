from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
import enum

from models import Base, value_enum


class NotificationEvent(str, enum.Enum):
    EARNING_CREATED = "earning_created"
    EARNINGS_AVAILABLE = "earnings_available"
    EARNING_REFUNDED = "earning_refunded"
    PAYOUT_REQUESTED = "payout_requested"
    PAYOUT_APPROVED = "payout_approved"
    PAYOUT_REJECTED = "payout_rejected"
    PAYOUT_COMPLETED = "payout_completed"


class SellerNotification(Base):
    __tablename__ = "seller_notifications"

    id = Column(Integer, primary_key=True, index=True)

    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    event = Column(value_enum(NotificationEvent, "notification_event"), nullable=False)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    data = Column(JSON, nullable=False, default=dict)

    is_read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
