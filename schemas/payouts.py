from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.payouts import PayoutMethod, PayoutStatus


class PayoutRequestIn(BaseModel):
    # Cents
    amount: int = Field(gt=0)
    method: PayoutMethod
    account_details: Dict[str, Any] = Field(default_factory=dict)


class PayoutItemOut(BaseModel):
    earning_id: int
    amount: int

    class Config:
        from_attributes = True


class PayoutOut(BaseModel):
    id: int
    seller_id: int
    amount: int
    method: PayoutMethod
    status: PayoutStatus
    failure_reason: Optional[str] = None
    requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    completed_at: Optional[datetime] = None
    transfer_reference: Optional[str] = None
    items: List[PayoutItemOut] = []

    class Config:
        from_attributes = True


class PayoutRejectIn(BaseModel):
    reason: Optional[str] = None


class PayoutCompleteIn(BaseModel):
    transfer_reference: Optional[str] = None
