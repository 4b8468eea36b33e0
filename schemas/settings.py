from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Dict, Optional


# ------------------------
# Commission settings
# ------------------------
class CommissionSettingsOut(BaseModel):
    default_rate: Decimal
    seller_custom_rates: Dict[str, Decimal]
    processing_fee_pct: Decimal
    processing_fee_fixed: int


class CommissionSettingsUpdate(BaseModel):
    default_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    seller_custom_rates: Optional[Dict[str, Decimal]] = None
    processing_fee_pct: Optional[Decimal] = Field(default=None, ge=0, le=Decimal("99.999"))
    processing_fee_fixed: Optional[int] = Field(default=None, ge=0)


# ------------------------
# Payout settings
# ------------------------
class PayoutSettingsOut(BaseModel):
    holding_period_days: int
    minimum_payout_amount: int
    maximum_payout_amount: int


class PayoutSettingsUpdate(BaseModel):
    holding_period_days: Optional[int] = Field(default=None, ge=0)
    minimum_payout_amount: Optional[int] = Field(default=None, ge=0)
    maximum_payout_amount: Optional[int] = Field(default=None, ge=0)
