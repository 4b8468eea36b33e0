# routers/checkout.py

from __future__ import annotations

import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.checkout_service import CheckoutError, attach_payment_intent, create_order
from app.db import get_db
from schemas.orders import CheckoutRequest, CheckoutResponse, OrderOut

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/orders", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
def create_checkout_order(payload: CheckoutRequest, db: Session = Depends(get_db)):
    """
    Creates the order in pending_payment from the cart lines and, when Stripe
    is configured, the PaymentIntent the frontend confirms.
    The order becomes paid only through the Stripe webhook.
    """
    try:
        order = create_order(
            db,
            [line.model_dump() for line in payload.lines],
            user_id=payload.user_id,
            guest_email=str(payload.guest_email) if payload.guest_email else None,
        )
    except CheckoutError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        client_secret = attach_payment_intent(db, order)
    except stripe.StripeError as e:
        raise HTTPException(status_code=502, detail=f"Stripe error: {getattr(e, 'user_message', None) or str(e)}")

    return CheckoutResponse(order=OrderOut.model_validate(order), client_secret=client_secret)
