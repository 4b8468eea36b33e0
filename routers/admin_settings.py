# routers/admin_settings.py

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps import get_current_admin
from app.settings_service import (
    commission_settings_dict,
    payout_settings_dict,
    update_commission_settings,
    update_payout_settings,
)
from models.users import User
from schemas.settings import (
    CommissionSettingsOut,
    CommissionSettingsUpdate,
    PayoutSettingsOut,
    PayoutSettingsUpdate,
)

router = APIRouter(prefix="/admin", tags=["Admin Settings"])


@router.get("/commission-settings", response_model=CommissionSettingsOut)
def get_commission_settings(
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return commission_settings_dict(db)


@router.put("/commission-settings", response_model=CommissionSettingsOut)
def put_commission_settings(
    payload: CommissionSettingsUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        return update_commission_settings(db, admin_id=admin.id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/payout-settings", response_model=PayoutSettingsOut)
def get_payout_settings(
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return payout_settings_dict(db)


@router.put("/payout-settings", response_model=PayoutSettingsOut)
def put_payout_settings(
    payload: PayoutSettingsUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        return update_payout_settings(db, admin_id=admin.id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
