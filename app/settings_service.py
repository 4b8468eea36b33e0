# app/settings_service.py

"""
Admin-owned commission / payout settings.

The active row of each table is turned into an immutable config object that
callers load once per request and pass explicitly to the calculator, the
splitter and the payout processor. Until an admin saves settings the
environment defaults from app.config apply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.commission_service import CommissionConfig, ProcessingFeeModel
from app.config import settings
from models.commission_settings import CommissionSettings
from models.payout_settings import PayoutSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutConfig:
    holding_period_days: int
    minimum_payout_amount: int
    maximum_payout_amount: int

    def __post_init__(self):
        if self.holding_period_days < 0:
            raise ValueError("holding_period_days must be >= 0")
        if self.minimum_payout_amount < 0:
            raise ValueError("minimum_payout_amount must be >= 0")
        if self.maximum_payout_amount < self.minimum_payout_amount:
            raise ValueError("maximum_payout_amount must be >= minimum_payout_amount")


def default_payout_config() -> PayoutConfig:
    return PayoutConfig(
        holding_period_days=settings.default_holding_period_days,
        minimum_payout_amount=settings.default_minimum_payout_amount,
        maximum_payout_amount=settings.default_maximum_payout_amount,
    )


def default_commission_config() -> CommissionConfig:
    return CommissionConfig(default_rate=Decimal(str(settings.default_commission_rate)))


def _active_commission_row(db: Session) -> Optional[CommissionSettings]:
    return (
        db.query(CommissionSettings)
        .filter(CommissionSettings.is_active == True)  # noqa: E712
        .order_by(CommissionSettings.id.desc())
        .first()
    )


def _active_payout_row(db: Session) -> Optional[PayoutSettings]:
    return (
        db.query(PayoutSettings)
        .filter(PayoutSettings.is_active == True)  # noqa: E712
        .order_by(PayoutSettings.id.desc())
        .first()
    )


def _commission_config_from_row(row: CommissionSettings) -> CommissionConfig:
    fee_model = ProcessingFeeModel(
        percent=Decimal(str(row.processing_fee_pct or 0)),
        fixed=int(row.processing_fee_fixed or 0),
    )
    return CommissionConfig(
        default_rate=Decimal(str(row.default_rate)),
        seller_rates={int(k): Decimal(str(v)) for k, v in (row.seller_custom_rates or {}).items()},
        fee_model=fee_model if fee_model.enabled else None,
    )


def load_commission_config(db: Session) -> CommissionConfig:
    row = _active_commission_row(db)
    if not row:
        return default_commission_config()
    return _commission_config_from_row(row)


def load_payout_config(db: Session) -> PayoutConfig:
    row = _active_payout_row(db)
    if not row:
        return default_payout_config()
    return PayoutConfig(
        holding_period_days=int(row.holding_period_days),
        minimum_payout_amount=int(row.minimum_payout_amount),
        maximum_payout_amount=int(row.maximum_payout_amount),
    )


# ---------------------------------------------------------
# ADMIN READ / UPDATE
# ---------------------------------------------------------
def commission_settings_dict(db: Session) -> dict[str, Any]:
    config = load_commission_config(db)
    fee = config.fee_model or ProcessingFeeModel()
    return {
        "default_rate": config.default_rate,
        "seller_custom_rates": {str(k): v for k, v in config.seller_rates.items()},
        "processing_fee_pct": fee.percent,
        "processing_fee_fixed": fee.fixed,
    }


def update_commission_settings(
    db: Session,
    *,
    admin_id: int,
    default_rate: Optional[Decimal] = None,
    seller_custom_rates: Optional[Mapping[str, Decimal]] = None,
    processing_fee_pct: Optional[Decimal] = None,
    processing_fee_fixed: Optional[int] = None,
) -> dict[str, Any]:
    current = load_commission_config(db)
    current_fee = current.fee_model or ProcessingFeeModel()

    merged_rates = current.seller_rates if seller_custom_rates is None else seller_custom_rates
    fee_model = ProcessingFeeModel(
        percent=current_fee.percent if processing_fee_pct is None else processing_fee_pct,
        fixed=current_fee.fixed if processing_fee_fixed is None else processing_fee_fixed,
    )
    # Validates every rate before anything is written
    config = CommissionConfig(
        default_rate=current.default_rate if default_rate is None else default_rate,
        seller_rates={int(k): v for k, v in merged_rates.items()},
        fee_model=fee_model,
    )

    row = _active_commission_row(db)
    if not row:
        row = CommissionSettings(is_active=True)
        db.add(row)

    row.default_rate = config.default_rate
    row.seller_custom_rates = {str(k): str(v) for k, v in config.seller_rates.items()}
    row.processing_fee_pct = fee_model.percent
    row.processing_fee_fixed = fee_model.fixed
    row.updated_by = admin_id

    db.commit()
    logger.info("Commission settings updated by admin_id=%s default_rate=%s", admin_id, config.default_rate)
    return commission_settings_dict(db)


def payout_settings_dict(db: Session) -> dict[str, Any]:
    config = load_payout_config(db)
    return {
        "holding_period_days": config.holding_period_days,
        "minimum_payout_amount": config.minimum_payout_amount,
        "maximum_payout_amount": config.maximum_payout_amount,
    }


def update_payout_settings(
    db: Session,
    *,
    admin_id: int,
    holding_period_days: Optional[int] = None,
    minimum_payout_amount: Optional[int] = None,
    maximum_payout_amount: Optional[int] = None,
) -> dict[str, Any]:
    current = load_payout_config(db)
    config = PayoutConfig(
        holding_period_days=current.holding_period_days if holding_period_days is None else holding_period_days,
        minimum_payout_amount=(
            current.minimum_payout_amount if minimum_payout_amount is None else minimum_payout_amount
        ),
        maximum_payout_amount=(
            current.maximum_payout_amount if maximum_payout_amount is None else maximum_payout_amount
        ),
    )

    row = _active_payout_row(db)
    if not row:
        row = PayoutSettings(is_active=True)
        db.add(row)

    row.holding_period_days = config.holding_period_days
    row.minimum_payout_amount = config.minimum_payout_amount
    row.maximum_payout_amount = config.maximum_payout_amount
    row.updated_by = admin_id

    db.commit()
    logger.info(
        "Payout settings updated by admin_id=%s holding_days=%s min=%s max=%s",
        admin_id,
        config.holding_period_days,
        config.minimum_payout_amount,
        config.maximum_payout_amount,
    )
    return payout_settings_dict(db)
