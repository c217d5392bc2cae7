"""SQLAlchemy models package."""

# Import all models
from .auth_identity import AuthSession  # noqa: F401
from .loyalty import EARNING_ENTRY_TYPES, PointsLedgerEntry, PointsLedgerEntryType  # noqa: F401
from .order import Order, OrderCreatorEnum, OrderItem, OrderStatusEnum  # noqa: F401
from .order_state_event import (  # noqa: F401
    OrderStateActorTypeEnum,
    OrderStateEvent,
    OrderStateEventTypeEnum,
)
from .product import Product, ProductOriginEnum  # noqa: F401
from .redemption import (  # noqa: F401
    FulfillmentMethodEnum,
    Redemption,
    RedemptionStateEvent,
    RedemptionStatusEnum,
)
from .user import AccountTypeEnum, User, UserRoleEnum  # noqa: F401
