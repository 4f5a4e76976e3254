from .errors import (
    OrderError, PermissionDenied, InvalidTransition, MissingNotes,
    InvalidDiscount, InvalidTax, OrderValidationFailed, OrderLocked,
    OrderNotFound, UnknownProduct, InvalidQuickItem, UnknownRole, ApiError,
)
from .pricing import price_items, apply_pricing, derive_payment_status, format_currency
from .status_machine import TRANSITIONS, available_actions, transition
from .validator import validate_item, validate_order
from .quick_order import QuickProductCatalog, build_quick_item, build_quick_items
from .permissions import PermissionSet, RoleDirectory
from .filters import FilterStore, MemoryKeyValueStore, JsonFileKeyValueStore
from .database import OrderDatabase
from .api_client import OrderApiClient
from .service import OrderService

__all__ = [
    "OrderError", "PermissionDenied", "InvalidTransition", "MissingNotes",
    "InvalidDiscount", "InvalidTax", "OrderValidationFailed", "OrderLocked",
    "OrderNotFound", "UnknownProduct", "InvalidQuickItem", "UnknownRole", "ApiError",
    "price_items", "apply_pricing", "derive_payment_status", "format_currency",
    "TRANSITIONS", "available_actions", "transition",
    "validate_item", "validate_order",
    "QuickProductCatalog", "build_quick_item", "build_quick_items",
    "PermissionSet", "RoleDirectory",
    "FilterStore", "MemoryKeyValueStore", "JsonFileKeyValueStore",
    "OrderDatabase", "OrderApiClient", "OrderService",
]
