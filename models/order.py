import re
from decimal import Decimal
from typing import Literal, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


OrderStatus = Literal[
    "pending",
    "approved",
    "processing",
    "ready",
    "dispatched",
    "delivered",
    "completed",
    "cancelled",
    "rejected",
]

PaymentStatus = Literal["pending", "partial", "paid", "overdue"]
PaymentTerms = Literal["Cash", "Credit", "Advance"]
Priority = Literal["low", "normal", "high", "urgent"]

NAMED_PACKAGING = ("Loose", "Standard", "Custom")
_BAG_PACKAGING_RE = re.compile(r"^(\d+(?:\.\d+)?)kg Bags?$")


class _WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire (REST API payloads)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItem(_WireModel):
    """
    One line of an order.

    quantity and rate_per_unit are not range-checked here so that
    validate_item() can report every problem at once. total_amount is a
    cached value only; pricing always recomputes it.
    """
    product_name: str = ""
    product_key: Optional[str] = None   # Stable catalog key (quick-order products)
    grade: Optional[str] = None
    quantity: Decimal = Decimal("0")
    unit: str = "KG"
    rate_per_unit: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    packaging: str = "Loose"            # Loose / Standard / Custom / "<N>kg Bags"
    is_bag_selection: bool = False
    bag_pieces: Optional[int] = None

    @field_validator("packaging")
    @classmethod
    def _check_packaging(cls, value: str) -> str:
        if value in NAMED_PACKAGING or _BAG_PACKAGING_RE.match(value):
            return value
        raise ValueError(
            f"Unknown packaging {value!r}; expected one of {NAMED_PACKAGING} or '<N>kg Bags'"
        )


def bag_size_from_packaging(packaging: Optional[str]) -> Optional[Decimal]:
    """Return the bag size in kg for a '<N>kg Bags' label, else None."""
    if not packaging:
        return None
    m = _BAG_PACKAGING_RE.match(packaging)
    return Decimal(m.group(1)) if m else None


class Order(_WireModel):
    """
    A customer order as exchanged with the persistence collaborator.

    Financial fields are stored but must always be re-derivable from items
    plus the discount/tax inputs (see orders.pricing.apply_pricing).
    `discount` is the derived discount amount only. The fixed discount the
    caller asked for lives in `discount_fixed`; it applies when
    discount_percentage is 0 and is kept even when the amount gets clamped.
    """
    id: Optional[str] = Field(default=None, alias="_id")
    order_number: Optional[str] = None
    customer: Optional[str] = None          # Customer id
    items: List[OrderItem] = Field(default_factory=list)

    subtotal: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")             # Derived amount
    discount_fixed: Decimal = Decimal("0")       # Fixed discount input
    discount_percentage: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    tax_percentage: Decimal = Decimal("0")
    is_taxable: bool = False
    total_amount: Decimal = Decimal("0")

    paid_amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_status: PaymentStatus = "pending"
    payment_terms: Optional[PaymentTerms] = None
    priority: Priority = "normal"

    status: OrderStatus = "pending"
    notes: str = ""
    status_notes: Optional[str] = None      # Notes given with the last transition
    godown: Optional[str] = None
    delivery_instructions: str = ""

    created_at: Optional[str] = None        # ISO 8601, set by persistence
    updated_at: Optional[str] = None

    @field_validator("customer", "godown", mode="before")
    @classmethod
    def _reference_id(cls, value):
        # The API may return references populated as objects
        if isinstance(value, dict):
            return value.get("_id") or value.get("id")
        return value

    @property
    def remaining_amount(self) -> Decimal:
        return max(Decimal("0"), self.total_amount - self.paid_amount)

    def to_wire(self) -> dict:
        """JSON-safe dict with camelCase keys (money as strings), for display and files."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
