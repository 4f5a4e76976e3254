"""
Exception taxonomy for the order core.

Every failure here is a local, synchronous refusal: the requested mutation
simply does not proceed. Nothing is retried and nothing is fatal.
"""
from typing import Iterable, Optional


class OrderError(Exception):
    """Base class for all order-core failures."""


class PermissionDenied(OrderError):
    def __init__(self, action: str, permission: str) -> None:
        self.action = action
        self.permission = permission
        super().__init__(f"Action '{action}' requires permission '{permission}'")


class InvalidTransition(OrderError):
    def __init__(self, action: str, status: Optional[str], reason: Optional[str] = None) -> None:
        self.action = action
        self.status = status
        super().__init__(reason or f"Action '{action}' is not allowed from status '{status}'")


class MissingNotes(OrderError):
    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Action '{action}' requires notes explaining the reason")


class InvalidDiscount(OrderError, ValueError):
    pass


class InvalidTax(OrderError, ValueError):
    pass


class OrderValidationFailed(OrderError):
    """Raised when an order with validation issues is about to be persisted."""

    def __init__(self, issues: Iterable) -> None:
        self.issues = list(issues)
        summary = "; ".join(str(i) for i in self.issues[:3])
        more = f" (+{len(self.issues) - 3} more)" if len(self.issues) > 3 else ""
        super().__init__(f"Order is invalid: {summary}{more}")


class OrderLocked(OrderError):
    def __init__(self, order_id: Optional[str], status: str) -> None:
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is {status} and can no longer be edited")


class OrderNotFound(OrderError, LookupError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class UnknownProduct(OrderError, LookupError):
    def __init__(self, product_key: str) -> None:
        self.product_key = product_key
        super().__init__(f"Unknown product key: {product_key}")


class InvalidQuickItem(OrderError, ValueError):
    pass


class UnknownRole(OrderError, LookupError):
    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"Unknown role: {role}")


class ApiError(OrderError):
    """The remote order API answered with an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)
