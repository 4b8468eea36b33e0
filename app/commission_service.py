# app/commission_service.py

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional

from app.errors import NegativeNetAmountError

HUNDRED = Decimal("100")

# Scales of the stored columns: commission rates Numeric(5, 2), fee percent Numeric(5, 3)
RATE_PLACES = Decimal("0.01")
FEE_PERCENT_PLACES = Decimal("0.001")


def round_cents(v: Decimal) -> int:
    """Round half-up to a whole minor unit."""
    return int(v.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _as_rate(value, name: str, places: Decimal = RATE_PLACES) -> Decimal:
    """Parses a percentage and rounds it half-up to what the database stores."""
    rate = Decimal(str(value))
    if rate < 0 or rate > HUNDRED:
        raise ValueError(f"{name} must be between 0 and 100, got {rate}")
    return rate.quantize(places, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ProcessingFeeModel:
    """
    Card processor fee passed through to the seller.
    percent is a percentage of the gross (2.9 -> 2.9%), fixed is in cents.
    """
    percent: Decimal = Decimal("0")
    fixed: int = 0

    def __post_init__(self):
        object.__setattr__(self, "percent", _as_rate(self.percent, "processing fee percent", FEE_PERCENT_PLACES))
        if int(self.fixed) < 0:
            raise ValueError(f"processing fee fixed part must be >= 0, got {self.fixed}")

    @property
    def enabled(self) -> bool:
        return self.percent > 0 or self.fixed > 0

    def fee_for(self, gross_amount: int) -> int:
        if not self.enabled:
            return 0
        return round_cents(Decimal(gross_amount) * self.percent / HUNDRED) + int(self.fixed)


@dataclass(frozen=True)
class CommissionConfig:
    """Commission settings snapshot, loaded once per request."""
    default_rate: Decimal
    seller_rates: Mapping[int, Decimal] = field(default_factory=dict)
    fee_model: Optional[ProcessingFeeModel] = None

    def __post_init__(self):
        object.__setattr__(self, "default_rate", _as_rate(self.default_rate, "default commission rate"))
        object.__setattr__(
            self,
            "seller_rates",
            {int(k): _as_rate(v, f"commission rate for seller {k}") for k, v in dict(self.seller_rates).items()},
        )

    def rate_for(self, seller_id: int) -> Decimal:
        return self.seller_rates.get(int(seller_id), self.default_rate)


@dataclass(frozen=True)
class EarningAmounts:
    gross_amount: int
    commission_rate: Decimal
    commission_amount: int
    processing_fee: int
    net_amount: int


def compute_amounts(
    gross_amount: int,
    commission_rate,
    fee_model: Optional[ProcessingFeeModel] = None,
) -> EarningAmounts:
    """
    Split a seller's gross into commission, processing fee and net.
    Raises NegativeNetAmountError when commission + fee exceed the gross.
    """
    if isinstance(gross_amount, bool) or not isinstance(gross_amount, int):
        raise ValueError(f"gross_amount must be an integer amount of cents, got {gross_amount!r}")
    if gross_amount < 0:
        raise ValueError(f"gross_amount must be >= 0, got {gross_amount}")

    rate = _as_rate(commission_rate, "commission rate")

    commission = round_cents(Decimal(gross_amount) * rate / HUNDRED)
    fee = fee_model.fee_for(gross_amount) if fee_model else 0
    net = gross_amount - commission - fee

    if net < 0:
        raise NegativeNetAmountError(gross_amount, commission, fee)

    return EarningAmounts(
        gross_amount=gross_amount,
        commission_rate=rate,
        commission_amount=commission,
        processing_fee=fee,
        net_amount=net,
    )
