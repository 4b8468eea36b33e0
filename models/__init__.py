import enum

from sqlalchemy import Enum
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def value_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Enum column type that stores the lowercase values, not the member names."""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# --------------------------------------------------
# Accounts & catalog (read-only from the earnings core)
# --------------------------------------------------
from .users import User  # noqa: E402,F401
from .products import Product  # noqa: E402,F401

# --------------------------------------------------
# Orders & split
# --------------------------------------------------
from .orders import Order  # noqa: E402,F401
from .sub_orders import SubOrder  # noqa: E402,F401

# --------------------------------------------------
# Earnings & payouts
# --------------------------------------------------
from .seller_earnings import SellerEarning  # noqa: E402,F401
from .payouts import Payout, PayoutItem  # noqa: E402,F401

# --------------------------------------------------
# Admin configuration
# --------------------------------------------------
from .commission_settings import CommissionSettings  # noqa: E402,F401
from .payout_settings import PayoutSettings  # noqa: E402,F401

# --------------------------------------------------
# Notifications
# --------------------------------------------------
from .seller_notifications import SellerNotification  # noqa: E402,F401
