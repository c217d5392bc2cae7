"""Order services."""

from .fulfillment import OrderFulfillmentService, normalize_line_items
from .order_numbers import generate_order_number, is_order_number
from .state_machine import OrderEventDescriptor, OrderStateMachine

__all__ = [
    "OrderEventDescriptor",
    "OrderFulfillmentService",
    "OrderStateMachine",
    "generate_order_number",
    "is_order_number",
    "normalize_line_items",
]
