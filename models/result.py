from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel

from .order import PaymentStatus


IssueCode = Literal[
    # Item level
    "missing_product_name",
    "invalid_quantity",
    "missing_unit",
    "invalid_rate",
    # Order level
    "missing_customer",
    "missing_items",
    "missing_payment_terms",
]


class ValidationIssue(BaseModel):
    """A single validation failure found on an order or one of its items."""
    code: str                               # One of IssueCode values
    message: str                            # Human-readable explanation
    field: Optional[str] = None             # Which field is affected
    item_position: Optional[int] = None     # 1-based item position, for item issues

    def __str__(self) -> str:
        return self.message


class PricingSnapshot(BaseModel):
    """
    The financial figures of an order, always computed together from one
    item list so none of them can be stale relative to the others.
    """
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    paid_amount: Decimal = Decimal("0")
    payment_status: PaymentStatus = "pending"

    @property
    def remaining_amount(self) -> Decimal:
        return max(Decimal("0"), self.total - self.paid_amount)
