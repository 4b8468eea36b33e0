# routers/seller_earnings.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps import get_current_seller
from app.earnings_service import get_balance, list_earnings
from app.errors import (
    AboveMaximumPayoutError,
    BelowMinimumPayoutError,
    InsufficientBalanceError,
)
from app.payout_service import list_payouts, request_payout
from app.settings_service import load_payout_config
from models.seller_earnings import EarningStatus
from models.users import User
from schemas.earnings import BalanceOut, EarningOut, EarningsDashboard
from schemas.payouts import PayoutOut, PayoutRequestIn

router = APIRouter(prefix="/seller", tags=["Seller Earnings"])

RECENT_PAYOUTS = 10


@router.get("/earnings", response_model=EarningsDashboard)
def seller_earnings(
    status_filter: Optional[EarningStatus] = None,
    current_seller: User = Depends(get_current_seller),
    db: Session = Depends(get_db),
):
    """
    Dashboard seller (amounts in cents):
    - balance: available / reserved / pending / paid / total
    - earnings: one row per sub-order
    - payouts: last requests
    """
    balance = get_balance(db, current_seller.id)
    earnings = list_earnings(db, current_seller.id, status=status_filter)
    payouts = list_payouts(db, seller_id=current_seller.id, limit=RECENT_PAYOUTS)

    return EarningsDashboard(
        balance=BalanceOut.model_validate(balance),
        earnings=[EarningOut.model_validate(e) for e in earnings],
        payouts=[PayoutOut.model_validate(p) for p in payouts],
    )


@router.post("/payouts/request", response_model=PayoutOut)
def seller_request_payout(
    payload: PayoutRequestIn,
    current_seller: User = Depends(get_current_seller),
    db: Session = Depends(get_db),
):
    try:
        payout = request_payout(
            db,
            seller_id=current_seller.id,
            amount=payload.amount,
            method=payload.method,
            account_details=payload.account_details,
            payout_config=load_payout_config(db),
        )
    except BelowMinimumPayoutError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "BelowMinimumPayoutError", "message": str(e), "minimum": e.minimum},
        )
    except AboveMaximumPayoutError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "AboveMaximumPayoutError", "message": str(e), "maximum": e.maximum},
        )
    except InsufficientBalanceError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "InsufficientBalanceError", "message": str(e), "available": e.available},
        )

    return PayoutOut.model_validate(payout)


@router.get("/payouts", response_model=list[PayoutOut])
def seller_payouts(
    current_seller: User = Depends(get_current_seller),
    db: Session = Depends(get_db),
):
    payouts = list_payouts(db, seller_id=current_seller.id)
    return [PayoutOut.model_validate(p) for p in payouts]
