from decimal import Decimal
from typing import Optional, List

from pydantic import Field

from .order import _WireModel


class QuickProduct(_WireModel):
    """
    A sellable product in the quick-order catalog.
    city_tokens restricts the product to customers/godowns in those areas;
    an empty list means it is sellable everywhere.
    """
    key: str
    name: str
    price_per_kg: Decimal
    bag_size_kg: Optional[Decimal] = None
    default_packaging: Optional[str] = None
    category: Optional[str] = None
    city_tokens: List[str] = Field(default_factory=list)


class QuickOrderItemInput(_WireModel):
    """One product pick from the quick-order flow: either bags or kilograms."""
    product_key: str
    quantity_kg: Optional[Decimal] = None
    bags: Optional[int] = None
    packaging: Optional[str] = None
