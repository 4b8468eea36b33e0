# routers/payouts_admin.py

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import settings
from app.db import get_db
from app.deps import get_current_admin
from app.errors import PayoutStateError
from app.payout_service import approve_payout, complete_payout, list_payouts, reject_payout
from models.payouts import Payout, PayoutMethod, PayoutStatus
from models.users import User
from schemas.payouts import PayoutCompleteIn, PayoutOut, PayoutRejectIn

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/payouts",
    tags=["Admin Payouts"],
)


def _not_found(payout_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Payout {payout_id} not found.",
    )


def _conflict(e: PayoutStateError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"error": "PayoutStateError", "message": str(e), "current_status": e.current},
    )


def _stripe_transfer(payout: Payout) -> Optional[str]:
    """
    Sends the money for stripe_connect payouts.
    Returns the transfer id, or None when the payout is settled outside Stripe.
    """
    if payout.method != PayoutMethod.STRIPE_CONNECT or not settings.stripe_secret_key:
        return None

    destination = (payout.account_details or {}).get("stripe_account_id")
    if not destination:
        raise HTTPException(status_code=400, detail="Missing stripe_account_id in payout account details.")

    stripe.api_key = settings.stripe_secret_key
    transfer = stripe.Transfer.create(
        amount=int(payout.amount),
        currency=settings.stripe_currency,
        destination=destination,
        metadata={"payout_id": str(payout.id), "seller_id": str(payout.seller_id)},
    )
    return transfer["id"]


# ---------------------------------------------------------
# LIST
# ---------------------------------------------------------
@router.get("", response_model=list[PayoutOut])
def admin_list_payouts(
    status_filter: Optional[PayoutStatus] = None,
    seller_id: Optional[int] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    payouts = list_payouts(db, seller_id=seller_id, status=status_filter)
    return [PayoutOut.model_validate(p) for p in payouts]


# ---------------------------------------------------------
# APPROVE / REJECT / COMPLETE
# ---------------------------------------------------------
@router.post("/{payout_id}/approve", response_model=PayoutOut)
def admin_approve_payout(
    payout_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        payout = approve_payout(db, payout_id, admin_id=admin.id)
    except LookupError:
        raise _not_found(payout_id)
    except PayoutStateError as e:
        raise _conflict(e)
    return PayoutOut.model_validate(payout)


@router.post("/{payout_id}/reject", response_model=PayoutOut)
def admin_reject_payout(
    payout_id: int,
    payload: PayoutRejectIn,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        payout = reject_payout(db, payout_id, admin_id=admin.id, reason=(payload.reason or "").strip() or None)
    except LookupError:
        raise _not_found(payout_id)
    except PayoutStateError as e:
        raise _conflict(e)
    return PayoutOut.model_validate(payout)


@router.post("/{payout_id}/complete", response_model=PayoutOut)
def admin_complete_payout(
    payout_id: int,
    payload: PayoutCompleteIn,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    payout = db.query(Payout).filter(Payout.id == payout_id).first()
    if not payout:
        raise _not_found(payout_id)
    if payout.status != PayoutStatus.APPROVED:
        raise _conflict(PayoutStateError(payout.id, payout.status.value, PayoutStatus.APPROVED.value, "complete"))

    reference = payload.transfer_reference
    if not reference:
        try:
            reference = _stripe_transfer(payout)
        except stripe.StripeError as e:
            logger.exception("Stripe transfer FAILED | payout_id=%s", payout.id)
            raise HTTPException(status_code=502, detail=f"Stripe error: {getattr(e, 'user_message', None) or str(e)}")

    try:
        payout = complete_payout(db, payout_id, transfer_reference=reference)
    except PayoutStateError as e:
        raise _conflict(e)
    return PayoutOut.model_validate(payout)
