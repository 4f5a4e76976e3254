from .order import (
    Order, OrderItem, OrderStatus, PaymentStatus, PaymentTerms, Priority,
    bag_size_from_packaging,
)
from .catalog import QuickProduct, QuickOrderItemInput
from .result import ValidationIssue, PricingSnapshot

__all__ = [
    "Order", "OrderItem", "OrderStatus", "PaymentStatus", "PaymentTerms", "Priority",
    "bag_size_from_packaging",
    "QuickProduct", "QuickOrderItemInput",
    "ValidationIssue", "PricingSnapshot",
]
