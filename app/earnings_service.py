# app/earnings_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app import notification_service
from app.errors import OrderNotPaidError
from app.notification_service import format_cents
from models.orders import Order, OrderStatus
from models.payouts import Payout, PayoutStatus
from models.seller_earnings import EarningStatus, SellerEarning
from models.seller_notifications import NotificationEvent
from models.users import User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SellerBalance:
    """
    available + reserved + pending + paid == total, always.
    reserved is the part of available earnings held by payouts awaiting approval.
    refunded is what refunds took back and is already excluded from total.
    """
    available: int
    reserved: int
    pending: int
    paid: int
    total: int
    commission: int
    refunded: int = 0


def get_balance(db: Session, seller_id: int) -> SellerBalance:
    rows = (
        db.query(
            SellerEarning.status,
            func.coalesce(func.sum(SellerEarning.net_amount), 0),
            func.coalesce(func.sum(SellerEarning.reserved_amount), 0),
            func.coalesce(func.sum(SellerEarning.paid_amount), 0),
            func.coalesce(func.sum(SellerEarning.commission_amount), 0),
            func.coalesce(func.sum(SellerEarning.refunded_amount), 0),
        )
        .filter(SellerEarning.seller_id == seller_id)
        .group_by(SellerEarning.status)
        .all()
    )

    available = reserved = pending = paid = total = commission = refunded = 0
    for status, net_sum, reserved_sum, paid_sum, commission_sum, refunded_sum in rows:
        net_sum, reserved_sum, paid_sum = int(net_sum), int(reserved_sum), int(paid_sum)
        total += net_sum
        paid += paid_sum
        commission += int(commission_sum)
        refunded += int(refunded_sum)
        if status == EarningStatus.AVAILABLE:
            available += net_sum - reserved_sum - paid_sum
            reserved += reserved_sum
        elif status == EarningStatus.PENDING:
            pending += net_sum

    return SellerBalance(
        available=available,
        reserved=reserved,
        pending=pending,
        paid=paid,
        total=total,
        commission=commission,
        refunded=refunded,
    )


def paid_out_total(db: Session, seller_id: int) -> int:
    """Sum of approved / completed payouts. Matches get_balance().paid."""
    total = (
        db.query(func.coalesce(func.sum(Payout.amount), 0))
        .filter(
            Payout.seller_id == seller_id,
            Payout.status.in_([PayoutStatus.APPROVED, PayoutStatus.COMPLETED]),
        )
        .scalar()
    )
    return int(total or 0)


def list_earnings(
    db: Session,
    seller_id: int,
    status: Optional[EarningStatus] = None,
) -> list[SellerEarning]:
    q = db.query(SellerEarning).filter(SellerEarning.seller_id == seller_id)
    if status is not None:
        q = q.filter(SellerEarning.status == status)
    return q.order_by(SellerEarning.created_at.desc(), SellerEarning.id.desc()).all()


def promote_pending_to_available(db: Session, now: Optional[datetime] = None) -> list[SellerEarning]:
    """
    Daily sweep: pending earnings whose holding period is over become
    available. Running it twice is harmless, the status filter guarantees
    each earning moves at most once.
    """
    now = now or datetime.now(timezone.utc)

    due = (
        db.query(SellerEarning)
        .filter(
            SellerEarning.status == EarningStatus.PENDING,
            SellerEarning.available_date <= now,
        )
        .order_by(SellerEarning.id.asc())
        .with_for_update(skip_locked=True)
        .all()
    )
    if not due:
        logger.info("Earnings sweep: nothing to promote | now=%s", now.isoformat())
        return []

    per_seller: dict[int, list[SellerEarning]] = {}
    for earning in due:
        earning.status = EarningStatus.AVAILABLE
        per_seller.setdefault(int(earning.seller_id), []).append(earning)

    notifications = []
    for seller_id, earnings in per_seller.items():
        amount = sum(int(e.net_amount) for e in earnings)
        notifications.append(
            notification_service.emit(
                db,
                seller_id=seller_id,
                event=NotificationEvent.EARNINGS_AVAILABLE,
                title="Earnings available",
                message=f"{format_cents(amount)} is now available for payout",
                data={"earning_ids": [e.id for e in earnings], "amount": amount},
            )
        )

    db.commit()

    logger.info(
        "Earnings sweep: promoted %s earnings for %s sellers | total=%s",
        len(due),
        len(per_seller),
        sum(int(e.net_amount) for e in due),
    )
    notification_service.deliver(notifications)
    return due


# ---------------------------------------------------------
# LOCKS (shared with the payout processor)
# ---------------------------------------------------------
def lock_seller(db: Session, seller_id: int) -> User:
    """
    Row lock on the seller. Every write to a seller's earnings ledger
    (payout request / approve / reject, refunds) takes it first.
    """
    seller = (
        db.query(User)
        .filter(User.id == seller_id, User.role == UserRole.SELLER)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if not seller:
        raise LookupError(f"Seller {seller_id} not found")
    return seller


def lock_item_earnings(db: Session, earning_ids: Iterable[int]) -> dict[int, SellerEarning]:
    """Locks and re-reads the given earnings, dropping any stale in-session copy."""
    ids = sorted(set(earning_ids))
    if not ids:
        return {}
    earnings = (
        db.query(SellerEarning)
        .filter(SellerEarning.id.in_(ids))
        .order_by(SellerEarning.id.asc())
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {e.id: e for e in earnings}


# ---------------------------------------------------------
# REFUNDS
# ---------------------------------------------------------
# Orders that never collected money have nothing to refund
NOT_REFUNDABLE = (OrderStatus.PENDING_PAYMENT, OrderStatus.FAILED, OrderStatus.CANCELLED)


@dataclass(frozen=True)
class RefundAdjustment:
    order_id: int
    seller_id: int
    earning_id: int
    requested: int
    adjusted: int
    shortfall: int
    net_amount: int
    earning_status: EarningStatus
    order_status: OrderStatus


def apply_refund(
    db: Session,
    *,
    order_id: int,
    seller_id: int,
    amount: int,
    reason: Optional[str] = None,
) -> RefundAdjustment:
    """
    Takes a refunded amount back from the seller's earning for the order.

    Only the part of the net that is neither reserved by a payout request nor
    already paid out can be reversed. Anything above it is returned as
    shortfall and has to be recovered by hand. An earning whose net reaches
    zero becomes refunded; the order becomes refunded once every earning of
    it is, partially_refunded before that.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Refund amount must be a positive number of cents, got {amount!r}")

    try:
        order = (
            db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if not order:
            raise LookupError(f"Order {order_id} not found")
        if order.status in NOT_REFUNDABLE:
            raise OrderNotPaidError(order.id, order.status.value, "refunded")

        lock_seller(db, seller_id)
        earning = (
            db.query(SellerEarning)
            .filter(SellerEarning.order_id == order_id, SellerEarning.seller_id == seller_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if not earning:
            raise LookupError(f"No earning for seller {seller_id} on order {order_id}")

        adjusted = min(amount, max(earning.unreserved_amount, 0))
        if adjusted:
            earning.net_amount = int(earning.net_amount) - adjusted
            earning.refunded_amount = int(earning.refunded_amount or 0) + adjusted
            if earning.net_amount == 0:
                earning.status = EarningStatus.REFUNDED
            elif earning.status == EarningStatus.AVAILABLE and int(earning.paid_amount) == earning.net_amount:
                earning.status = EarningStatus.PAID
                earning.paid_at = datetime.now(timezone.utc)
        db.flush()

        still_owed = (
            db.query(func.count(SellerEarning.id))
            .filter(SellerEarning.order_id == order_id, SellerEarning.status != EarningStatus.REFUNDED)
            .scalar()
        )
        order.status = OrderStatus.PARTIALLY_REFUNDED if still_owed else OrderStatus.REFUNDED

        shortfall = amount - adjusted
        notification = notification_service.emit(
            db,
            seller_id=seller_id,
            event=NotificationEvent.EARNING_REFUNDED,
            title="Refund issued",
            message=f"Order #{order_id}: {format_cents(adjusted)} deducted from your earnings",
            data={
                "order_id": order_id,
                "earning_id": earning.id,
                "requested": amount,
                "adjusted": adjusted,
                "shortfall": shortfall,
                "reason": reason,
            },
        )

        db.commit()
    except Exception:
        db.rollback()
        raise

    if shortfall:
        logger.warning(
            "Refund exceeds reversible earnings | order_id=%s | seller_id=%s | requested=%s | shortfall=%s",
            order_id,
            seller_id,
            amount,
            shortfall,
        )
    logger.info(
        "Refund applied | order_id=%s | seller_id=%s | adjusted=%s | net=%s",
        order_id,
        seller_id,
        adjusted,
        earning.net_amount,
    )
    notification_service.deliver([notification])

    return RefundAdjustment(
        order_id=order_id,
        seller_id=seller_id,
        earning_id=earning.id,
        requested=amount,
        adjusted=adjusted,
        shortfall=shortfall,
        net_amount=int(earning.net_amount),
        earning_status=earning.status,
        order_status=order.status,
    )
