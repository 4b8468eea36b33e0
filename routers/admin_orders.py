# routers/admin_orders.py

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps import get_current_admin
from app.earnings_service import apply_refund, promote_pending_to_available
from app.errors import SPLIT_DATA_ERRORS, OrderNotPaidError
from app.order_split_service import split_order
from app.payment_service import quarantine_order
from app.settings_service import load_commission_config, load_payout_config
from models.orders import Order
from models.users import User
from schemas.earnings import SweepResult
from schemas.orders import OrderOut, RefundIn, RefundOut, SplitResponse, SubOrderOut

router = APIRouter(prefix="/admin", tags=["Admin Orders"])


@router.get("/orders/quarantined", response_model=list[OrderOut])
def quarantined_orders(
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Paid orders whose split was rejected and still need a manual fix."""
    orders = (
        db.query(Order)
        .filter(Order.split_error.isnot(None))
        .order_by(Order.id.asc())
        .all()
    )
    return [OrderOut.model_validate(o) for o in orders]


@router.post("/orders/{order_id}/split", response_model=SplitResponse)
def resplit_order(
    order_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """
    Re-runs the split after the offending data has been corrected.
    Already split orders are returned unchanged.
    """
    try:
        sub_orders = split_order(
            db,
            order_id,
            commission_config=load_commission_config(db),
            payout_config=load_payout_config(db),
        )
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Order {order_id} not found.")
    except OrderNotPaidError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SPLIT_DATA_ERRORS as e:
        quarantine_order(db, order_id, f"{type(e).__name__}: {e}")
        raise HTTPException(
            status_code=422,
            detail={"error": type(e).__name__, "message": str(e)},
        )

    return SplitResponse(
        order_id=order_id,
        sub_orders=[SubOrderOut.model_validate(s) for s in sub_orders],
    )


@router.post("/orders/{order_id}/refunds", response_model=RefundOut)
def refund_order(
    order_id: int,
    payload: RefundIn,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """
    Reverses a customer refund on the seller's earning for this order.
    The part already reserved or paid out is reported as shortfall.
    """
    try:
        adjustment = apply_refund(
            db,
            order_id=order_id,
            seller_id=payload.seller_id,
            amount=payload.amount,
            reason=payload.reason,
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except OrderNotPaidError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return RefundOut.model_validate(adjustment)


@router.post("/earnings/process", response_model=SweepResult)
def process_earnings(
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Manual trigger of the daily pending -> available sweep."""
    promoted = promote_pending_to_available(db)
    return SweepResult(
        count=len(promoted),
        total_amount=sum(int(e.net_amount) for e in promoted),
        earning_ids=[e.id for e in promoted],
    )
