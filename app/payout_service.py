# app/payout_service.py

"""
Seller payouts.

Policy: funds are reserved when the seller makes the request, not when an
admin approves it. The request walks the seller's available earnings oldest
first and records one PayoutItem per earning it draws from, so a payout can
take part of an earning and leave the rest available. Approval turns the
reservation into paid, rejection releases it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from app import notification_service
from app.earnings_service import lock_item_earnings, lock_seller
from app.errors import (
    AboveMaximumPayoutError,
    BelowMinimumPayoutError,
    InsufficientBalanceError,
    PayoutStateError,
)
from app.notification_service import format_cents
from app.settings_service import PayoutConfig
from models.payouts import Payout, PayoutItem, PayoutMethod, PayoutStatus
from models.seller_earnings import EarningStatus, SellerEarning
from models.seller_notifications import NotificationEvent

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _lock_payout(db: Session, payout_id: int) -> Payout:
    payout = (
        db.query(Payout)
        .filter(Payout.id == payout_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if not payout:
        raise LookupError(f"Payout {payout_id} not found")
    return payout


def _require_status(payout: Payout, expected: PayoutStatus, action: str) -> None:
    if payout.status != expected:
        raise PayoutStateError(payout.id, payout.status.value, expected.value, action)


# ---------------------------------------------------------
# REQUEST
# ---------------------------------------------------------
def request_payout(
    db: Session,
    *,
    seller_id: int,
    amount: int,
    method: PayoutMethod,
    account_details: Optional[dict[str, Any]],
    payout_config: PayoutConfig,
) -> Payout:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Payout amount must be a positive number of cents, got {amount!r}")

    if amount < payout_config.minimum_payout_amount:
        raise BelowMinimumPayoutError(amount, payout_config.minimum_payout_amount)
    if amount > payout_config.maximum_payout_amount:
        raise AboveMaximumPayoutError(amount, payout_config.maximum_payout_amount)

    try:
        # Serialises concurrent requests of the same seller: the balance read
        # below cannot go stale before our reservation is committed
        lock_seller(db, seller_id)

        earnings = (
            db.query(SellerEarning)
            .filter(
                SellerEarning.seller_id == seller_id,
                SellerEarning.status == EarningStatus.AVAILABLE,
            )
            .order_by(SellerEarning.available_date.asc(), SellerEarning.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )

        available = sum(e.unreserved_amount for e in earnings)
        if amount > available:
            raise InsufficientBalanceError(amount, available)

        payout = Payout(
            seller_id=seller_id,
            amount=amount,
            method=method,
            account_details=account_details or {},
            status=PayoutStatus.PENDING_APPROVAL,
            requested_at=_utcnow(),
        )
        db.add(payout)

        remaining = amount
        for earning in earnings:
            if remaining == 0:
                break
            take = min(earning.unreserved_amount, remaining)
            if take <= 0:
                continue
            earning.reserved_amount = int(earning.reserved_amount or 0) + take
            payout.items.append(PayoutItem(earning_id=earning.id, amount=take))
            remaining -= take

        notification = notification_service.emit(
            db,
            seller_id=seller_id,
            event=NotificationEvent.PAYOUT_REQUESTED,
            title="Payout requested",
            message=f"Your payout request of {format_cents(amount)} is awaiting approval",
            data={"amount": amount, "method": method.value},
        )

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(
        "Payout requested | payout_id=%s | seller_id=%s | amount=%s | items=%s",
        payout.id,
        seller_id,
        amount,
        len(payout.items),
    )
    notification_service.deliver([notification])
    return payout


# ---------------------------------------------------------
# ADMIN TRANSITIONS
# ---------------------------------------------------------
def approve_payout(db: Session, payout_id: int, admin_id: int) -> Payout:
    try:
        payout = _lock_payout(db, payout_id)
        _require_status(payout, PayoutStatus.PENDING_APPROVAL, "approve")

        # Same lock order as request_payout: seller, then earnings
        lock_seller(db, payout.seller_id)
        earnings = lock_item_earnings(db, [item.earning_id for item in payout.items])

        now = _utcnow()
        for item in payout.items:
            earning = earnings[item.earning_id]
            earning.reserved_amount = int(earning.reserved_amount) - int(item.amount)
            earning.paid_amount = int(earning.paid_amount) + int(item.amount)
            if earning.paid_amount == int(earning.net_amount):
                earning.status = EarningStatus.PAID
                earning.paid_at = now

        payout.status = PayoutStatus.APPROVED
        payout.approved_at = now
        payout.approved_by = admin_id

        notification = notification_service.emit(
            db,
            seller_id=payout.seller_id,
            event=NotificationEvent.PAYOUT_APPROVED,
            title="Payout approved",
            message=f"Your payout of {format_cents(int(payout.amount))} has been approved",
            data={"payout_id": payout.id, "amount": int(payout.amount)},
        )

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info("Payout approved | payout_id=%s | admin_id=%s | amount=%s", payout.id, admin_id, payout.amount)
    notification_service.deliver([notification])
    return payout


def complete_payout(db: Session, payout_id: int, transfer_reference: Optional[str] = None) -> Payout:
    """Records that the money actually left (bank transfer done / Stripe transfer created)."""
    try:
        payout = _lock_payout(db, payout_id)
        _require_status(payout, PayoutStatus.APPROVED, "complete")

        payout.status = PayoutStatus.COMPLETED
        payout.completed_at = _utcnow()
        if transfer_reference:
            payout.transfer_reference = transfer_reference

        notification = notification_service.emit(
            db,
            seller_id=payout.seller_id,
            event=NotificationEvent.PAYOUT_COMPLETED,
            title="Payout sent",
            message=f"{format_cents(int(payout.amount))} has been sent to your account",
            data={"payout_id": payout.id, "transfer_reference": payout.transfer_reference},
        )

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info("Payout completed | payout_id=%s | reference=%s", payout.id, payout.transfer_reference)
    notification_service.deliver([notification])
    return payout


def reject_payout(db: Session, payout_id: int, admin_id: int, reason: Optional[str] = None) -> Payout:
    try:
        payout = _lock_payout(db, payout_id)
        _require_status(payout, PayoutStatus.PENDING_APPROVAL, "reject")

        lock_seller(db, payout.seller_id)
        earnings = lock_item_earnings(db, [item.earning_id for item in payout.items])

        for item in payout.items:
            earning = earnings[item.earning_id]
            earning.reserved_amount = int(earning.reserved_amount) - int(item.amount)

        payout.status = PayoutStatus.REJECTED
        payout.failure_reason = reason or "Rejected by admin"
        payout.approved_at = _utcnow()
        payout.approved_by = admin_id

        notification = notification_service.emit(
            db,
            seller_id=payout.seller_id,
            event=NotificationEvent.PAYOUT_REJECTED,
            title="Payout rejected",
            message=payout.failure_reason,
            data={"payout_id": payout.id, "amount": int(payout.amount)},
        )

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info("Payout rejected | payout_id=%s | admin_id=%s | reason=%s", payout.id, admin_id, payout.failure_reason)
    notification_service.deliver([notification])
    return payout


def list_payouts(
    db: Session,
    *,
    seller_id: Optional[int] = None,
    status: Optional[PayoutStatus] = None,
    limit: Optional[int] = None,
) -> list[Payout]:
    q = db.query(Payout)
    if seller_id is not None:
        q = q.filter(Payout.seller_id == seller_id)
    if status is not None:
        q = q.filter(Payout.status == status)
    q = q.order_by(Payout.requested_at.desc(), Payout.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()
