from pydantic import BaseModel
from decimal import Decimal
from datetime import datetime
from typing import List, Optional

from models.seller_earnings import EarningStatus
from schemas.payouts import PayoutOut


class EarningOut(BaseModel):
    id: int
    seller_id: int
    order_id: int
    sub_order_id: int
    gross_amount: int
    commission_rate: Decimal
    commission_amount: int
    processing_fee: int
    net_amount: int
    refunded_amount: int = 0
    reserved_amount: int
    paid_amount: int
    status: EarningStatus
    available_date: datetime
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BalanceOut(BaseModel):
    available: int
    reserved: int
    pending: int
    paid: int
    total: int
    commission: int
    refunded: int = 0

    class Config:
        from_attributes = True


class EarningsDashboard(BaseModel):
    balance: BalanceOut
    earnings: List[EarningOut]
    payouts: List[PayoutOut]


class SweepResult(BaseModel):
    count: int
    total_amount: int
    earning_ids: List[int]
