# app/checkout_service.py

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import stripe
from sqlalchemy.orm import Session

from app.config import settings
from models.orders import Order, OrderStatus
from models.products import Product

logger = logging.getLogger(__name__)


class CheckoutError(ValueError):
    pass


def build_basket(db: Session, lines: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Snapshots price, title and seller of each product at checkout time.
    lines: [{"product_id": int, "quantity": int}, ...]
    """
    if not lines:
        raise CheckoutError("Basket is empty.")

    product_ids = {int(line["product_id"]) for line in lines}
    products = {
        p.id: p
        for p in db.query(Product).filter(Product.id.in_(product_ids)).all()
    }

    basket = []
    for line in lines:
        product_id = int(line["product_id"])
        quantity = int(line["quantity"])
        if quantity < 1:
            raise CheckoutError(f"Invalid quantity {quantity} for product {product_id}.")

        product = products.get(product_id)
        if not product or not product.is_active:
            raise CheckoutError(f"Product {product_id} not found or not available.")

        basket.append(
            {
                "product_id": product.id,
                # None is kept as-is: the split rejects the order instead of dropping the line
                "seller_id": product.seller_id,
                "title": product.title,
                "price": int(product.price),
                "quantity": quantity,
            }
        )
    return basket


def create_order(
    db: Session,
    lines: Sequence[dict[str, Any]],
    *,
    user_id: Optional[int] = None,
    guest_email: Optional[str] = None,
) -> Order:
    if (user_id is None) == (guest_email is None):
        raise CheckoutError("Exactly one of user_id / guest_email is required.")

    basket = build_basket(db, lines)
    amount = sum(line["price"] * line["quantity"] for line in basket)

    order = Order(
        user_id=user_id,
        guest_email=guest_email,
        basket=basket,
        amount=amount,
        currency=settings.stripe_currency,
        status=OrderStatus.PENDING_PAYMENT,
    )
    db.add(order)
    db.commit()
    db.refresh(order)

    missing = [i for i, line in enumerate(basket) if line["seller_id"] is None]
    if missing:
        logger.warning("Order created with unattributed basket lines | order_id=%s | lines=%s", order.id, missing)

    logger.info("Order created | order_id=%s | amount=%s | lines=%s", order.id, amount, len(basket))
    return order


def attach_payment_intent(db: Session, order: Order) -> Optional[str]:
    """
    Creates the Stripe PaymentIntent for the order and stores its id.
    Returns the client_secret, or None when Stripe is not configured.
    """
    if not settings.stripe_secret_key:
        logger.warning("Stripe not configured, order_id=%s created without PaymentIntent", order.id)
        return None

    stripe.api_key = settings.stripe_secret_key
    intent = stripe.PaymentIntent.create(
        amount=int(order.amount),
        currency=order.currency,
        metadata={"order_id": str(order.id)},
        automatic_payment_methods={"enabled": True},
    )

    order.payment_intent_id = intent["id"]
    db.commit()
    db.refresh(order)
    return intent.get("client_secret")
