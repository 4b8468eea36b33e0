# app/order_split_service.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import notification_service
from app.commission_service import CommissionConfig, compute_amounts
from app.errors import (
    BasketTotalMismatchError,
    DuplicateSplitError,
    MissingSellerIdError,
    OrderNotPaidError,
)
from app.notification_service import format_cents
from app.settings_service import PayoutConfig
from models.orders import Order, OrderStatus
from models.seller_earnings import EarningStatus, SellerEarning
from models.seller_notifications import NotificationEvent
from models.sub_orders import FulfillmentStatus, SubOrder

logger = logging.getLogger(__name__)


def line_total(line: dict[str, Any]) -> int:
    return int(line["price"]) * int(line["quantity"])


def group_basket_by_seller(order_id: int, basket: list[dict[str, Any]]) -> dict[int, list[dict[str, Any]]]:
    """
    Groups basket lines by seller, keeping first-seen seller order.
    Every line must carry a seller_id: a line that cannot be attributed
    would otherwise end up with no earning at all.
    """
    missing = [i for i, line in enumerate(basket) if line.get("seller_id") in (None, "")]
    if missing:
        raise MissingSellerIdError(order_id, missing)

    groups: dict[int, list[dict[str, Any]]] = {}
    for line in basket:
        groups.setdefault(int(line["seller_id"]), []).append(line)
    return groups


def _existing_sub_orders(db: Session, order_id: int) -> list[SubOrder]:
    return (
        db.query(SubOrder)
        .filter(SubOrder.parent_order_id == order_id)
        .order_by(SubOrder.id.asc())
        .all()
    )


def _split_locked(
    db: Session,
    order_id: int,
    commission_config: CommissionConfig,
    payout_config: PayoutConfig,
    now: datetime,
) -> tuple[list[SubOrder], list]:
    # Row lock: a second webhook delivery waits here until we commit
    order = db.query(Order).filter(Order.id == order_id).with_for_update().one_or_none()
    if not order:
        raise LookupError(f"Order {order_id} not found")

    if order.status != OrderStatus.PAID:
        raise OrderNotPaidError(order.id, order.status.value if order.status else "unknown")

    if _existing_sub_orders(db, order.id):
        raise DuplicateSplitError(order.id)

    basket = list(order.basket or [])
    groups = group_basket_by_seller(order.id, basket)

    basket_total = sum(line_total(line) for line in basket)
    if basket_total != int(order.amount):
        raise BasketTotalMismatchError(order.id, int(order.amount), basket_total)

    available_date = now + timedelta(days=payout_config.holding_period_days)

    # Compute everything first so a bad rate rejects the whole order
    plan = []
    for seller_id, items in groups.items():
        gross = sum(line_total(line) for line in items)
        amounts = compute_amounts(gross, commission_config.rate_for(seller_id), commission_config.fee_model)
        plan.append((seller_id, items, amounts))

    sub_orders: list[SubOrder] = []
    notifications = []
    for seller_id, items, amounts in plan:
        sub_order = SubOrder(
            parent_order_id=order.id,
            seller_id=seller_id,
            items=items,
            total_amount=amounts.gross_amount,
            fulfillment_status=FulfillmentStatus.PENDING,
        )
        sub_order.earning = SellerEarning(
            seller_id=seller_id,
            order_id=order.id,
            gross_amount=amounts.gross_amount,
            commission_rate=amounts.commission_rate,
            commission_amount=amounts.commission_amount,
            processing_fee=amounts.processing_fee,
            net_amount=amounts.net_amount,
            reserved_amount=0,
            paid_amount=0,
            status=EarningStatus.PENDING,
            available_date=available_date,
        )
        db.add(sub_order)
        sub_orders.append(sub_order)

        notifications.append(
            notification_service.emit(
                db,
                seller_id=seller_id,
                event=NotificationEvent.EARNING_CREATED,
                title="New sale",
                message=(
                    f"Order #{order.id}: you earned {format_cents(amounts.net_amount)} "
                    f"(available after {payout_config.holding_period_days} days)"
                ),
                data={
                    "order_id": order.id,
                    "gross_amount": amounts.gross_amount,
                    "net_amount": amounts.net_amount,
                },
            )
        )

    order.split_error = None

    try:
        db.flush()
    except IntegrityError as exc:
        # Lost the race against a concurrent split of the same order
        raise DuplicateSplitError(order.id) from exc

    db.commit()
    return sub_orders, notifications


def split_order(
    db: Session,
    order_id: int,
    commission_config: CommissionConfig,
    payout_config: PayoutConfig,
    now: Optional[datetime] = None,
) -> list[SubOrder]:
    """
    Splits a paid order into one sub-order + one seller earning per seller.

    Safe to call more than once: an order that already has sub-orders is a
    no-op and the existing sub-orders are returned. Either every row is
    written or none is.
    """
    now = now or datetime.now(timezone.utc)

    try:
        sub_orders, notifications = _split_locked(db, order_id, commission_config, payout_config, now)
    except DuplicateSplitError:
        db.rollback()
        logger.info("Order split skipped, already split | order_id=%s", order_id)
        return _existing_sub_orders(db, order_id)
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Order split | order_id=%s | sellers=%s | net_total=%s",
        order_id,
        len(sub_orders),
        sum(int(s.earning.net_amount) for s in sub_orders),
    )
    notification_service.deliver(notifications)
    return sub_orders
