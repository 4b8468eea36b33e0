# app/errors.py

"""
Errors raised by the earnings core.

Data-integrity errors (missing seller, negative net, basket mismatch) are
fatal to a single order split: the order is quarantined until an admin fixes
the data and re-runs the split. Payout validation errors are returned to the
seller as 4xx responses.
"""

from typing import Optional, Sequence


class EarningsError(Exception):
    """Base class for every error raised by the earnings core."""


# --------------------------------------------------
# Order split
# --------------------------------------------------
class OrderNotPaidError(EarningsError):
    def __init__(self, order_id: int, status: str, action: str = "split"):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is {status}, only paid orders can be {action}")


class MissingSellerIdError(EarningsError):
    def __init__(self, order_id: int, line_indexes: Sequence[int]):
        self.order_id = order_id
        self.line_indexes = list(line_indexes)
        super().__init__(
            f"Order {order_id} has basket lines without seller_id at positions {self.line_indexes}"
        )


class NegativeNetAmountError(EarningsError):
    def __init__(self, gross_amount: int, commission_amount: int, processing_fee: int):
        self.gross_amount = gross_amount
        self.commission_amount = commission_amount
        self.processing_fee = processing_fee
        super().__init__(
            "Net amount would be negative: "
            f"gross={gross_amount} commission={commission_amount} fee={processing_fee}"
        )


class BasketTotalMismatchError(EarningsError):
    def __init__(self, order_id: int, order_amount: int, basket_total: int):
        self.order_id = order_id
        self.order_amount = order_amount
        self.basket_total = basket_total
        super().__init__(
            f"Order {order_id} amount {order_amount} does not match basket total {basket_total}"
        )


class DuplicateSplitError(EarningsError):
    """Order already split. Callers treat this as a successful no-op."""

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} already has sub-orders")


# Errors that quarantine an order instead of being retried
SPLIT_DATA_ERRORS = (MissingSellerIdError, NegativeNetAmountError, BasketTotalMismatchError)


# --------------------------------------------------
# Payouts
# --------------------------------------------------
class InsufficientBalanceError(EarningsError):
    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(f"Requested {requested} but only {available} is available")


class BelowMinimumPayoutError(EarningsError):
    def __init__(self, requested: int, minimum: int):
        self.requested = requested
        self.minimum = minimum
        super().__init__(f"Requested {requested} is below the minimum payout of {minimum}")


class AboveMaximumPayoutError(EarningsError):
    def __init__(self, requested: int, maximum: int):
        self.requested = requested
        self.maximum = maximum
        super().__init__(f"Requested {requested} exceeds the maximum payout of {maximum}")


class PayoutStateError(EarningsError):
    def __init__(self, payout_id: int, current: str, expected: str, action: Optional[str] = None):
        self.payout_id = payout_id
        self.current = current
        self.expected = expected
        verb = action or "update"
        super().__init__(
            f"Cannot {verb} payout {payout_id}: status is {current}, expected {expected}"
        )
