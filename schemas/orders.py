from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import List, Optional

from models.orders import OrderStatus
from models.seller_earnings import EarningStatus
from models.sub_orders import FulfillmentStatus


# --------- CHECKOUT ---------


class CheckoutLine(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class CheckoutRequest(BaseModel):
    lines: List[CheckoutLine] = Field(min_length=1)

    # Registered customer or guest, exactly one
    user_id: Optional[int] = None
    guest_email: Optional[EmailStr] = None


class BasketLine(BaseModel):
    product_id: int
    seller_id: Optional[int] = None
    title: Optional[str] = None
    price: int
    quantity: int


class OrderOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    guest_email: Optional[str] = None
    basket: List[BasketLine]
    amount: int
    currency: str
    status: OrderStatus
    payment_intent_id: Optional[str] = None
    split_error: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CheckoutResponse(BaseModel):
    order: OrderOut
    # Stripe PaymentIntent client secret (None when Stripe is not configured)
    client_secret: Optional[str] = None


# --------- SPLIT ---------


class SubOrderOut(BaseModel):
    id: int
    parent_order_id: int
    seller_id: int
    items: List[BasketLine]
    total_amount: int
    fulfillment_status: FulfillmentStatus

    class Config:
        from_attributes = True


class SplitResponse(BaseModel):
    order_id: int
    sub_orders: List[SubOrderOut]


# --------- REFUNDS ---------


class RefundIn(BaseModel):
    seller_id: int
    # Cents refunded to the customer for this seller's items
    amount: int = Field(gt=0)
    reason: Optional[str] = None


class RefundOut(BaseModel):
    order_id: int
    seller_id: int
    earning_id: int
    requested: int
    adjusted: int
    shortfall: int
    net_amount: int
    earning_status: EarningStatus
    order_status: OrderStatus

    class Config:
        from_attributes = True
