# app/payment_service.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.errors import SPLIT_DATA_ERRORS
from app.order_split_service import split_order
from app.settings_service import load_commission_config, load_payout_config
from models.orders import Order, OrderStatus

logger = logging.getLogger(__name__)


def _order_by_intent(db: Session, payment_intent_id: str) -> Optional[Order]:
    return db.query(Order).filter(Order.payment_intent_id == payment_intent_id).first()


def quarantine_order(db: Session, order_id: int, reason: str) -> None:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        return
    order.split_error = reason
    db.commit()


def split_or_quarantine(db: Session, order: Order) -> dict[str, Any]:
    """
    Runs the split for a paid order. Data-integrity failures leave the order
    paid but quarantined (split_error set) until an admin fixes the data.
    """
    order_id = order.id
    try:
        sub_orders = split_order(
            db,
            order_id,
            commission_config=load_commission_config(db),
            payout_config=load_payout_config(db),
        )
    except SPLIT_DATA_ERRORS as e:
        logger.error("Order split REJECTED | order_id=%s | %s: %s", order_id, type(e).__name__, e)
        quarantine_order(db, order_id, f"{type(e).__name__}: {e}")
        return {"split": "failed", "error": type(e).__name__, "detail": str(e)}

    return {"split": "ok", "sub_order_ids": [s.id for s in sub_orders]}


def confirm_payment(
    db: Session,
    payment_intent_id: str,
    amount_received: Optional[int] = None,
) -> dict[str, Any]:
    """
    Payment gateway says the intent succeeded:
    - unknown intent -> ignored
    - amount mismatch -> NOT marked paid (webhook hitting the wrong DB / wrong order)
    - marks PAID once, then always runs the split (idempotent)
    """
    order = _order_by_intent(db, payment_intent_id)
    if not order:
        logger.warning("Payment confirmation IGNORED, unknown intent | payment_intent_id=%s", payment_intent_id)
        return {"ok": True, "ignored": "order not found"}

    if amount_received is not None and int(amount_received) != int(order.amount):
        logger.error(
            "AMOUNT MISMATCH -> NOT MARKING PAID | order_id=%s | expected=%s | received=%s",
            order.id,
            order.amount,
            amount_received,
        )
        return {
            "ok": True,
            "ignored": "amount_mismatch",
            "order_id": order.id,
            "expected": int(order.amount),
            "received": int(amount_received),
        }

    was_paid = order.status == OrderStatus.PAID
    if order.status == OrderStatus.PENDING_PAYMENT or order.status == OrderStatus.FAILED:
        order.status = OrderStatus.PAID
        order.paid_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(order)
        logger.info("Order PAID | order_id=%s | payment_intent_id=%s", order.id, payment_intent_id)
    elif not was_paid:
        # Shipped / refunded / ... : the split already happened or must not happen
        logger.info(
            "Payment confirmation for order in status %s, nothing to do | order_id=%s",
            order.status.value,
            order.id,
        )
        return {"ok": True, "order_id": order.id, "status": order.status.value, "ignored": "status"}

    result = split_or_quarantine(db, order)
    return {
        "ok": True,
        "order_id": order.id,
        "status": OrderStatus.PAID.value,
        "was_already_paid": was_paid,
        **result,
    }


def mark_payment_failed(db: Session, payment_intent_id: str) -> dict[str, Any]:
    order = _order_by_intent(db, payment_intent_id)
    if not order:
        return {"ok": True, "ignored": "order not found"}

    if order.status != OrderStatus.PENDING_PAYMENT:
        return {"ok": True, "order_id": order.id, "status": order.status.value, "ignored": "status"}

    order.status = OrderStatus.FAILED
    db.commit()
    logger.info("Order payment FAILED | order_id=%s | payment_intent_id=%s", order.id, payment_intent_id)
    return {"ok": True, "order_id": order.id, "status": OrderStatus.FAILED.value}
