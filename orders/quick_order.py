"""
Quick-order item construction.

The quick-order flow lets a salesperson pick catalog products and enter
either a number of bags or a weight in kilograms. Products are looked up by
their stable catalog key only; display names are never matched.
"""
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from models.catalog import QuickOrderItemInput, QuickProduct
from models.order import OrderItem
from .errors import InvalidQuickItem, UnknownProduct
from .pricing import compute_line_total, to_decimal

logger = logging.getLogger(__name__)


class QuickProductCatalog:
    """
    In-memory catalog of quick-order products, keyed by product key.

    Usage:
        catalog = QuickProductCatalog.from_json(path)
        product = catalog.get("atta-10kg")
    """

    def __init__(self, products: Iterable[QuickProduct]) -> None:
        self.products: list[QuickProduct] = list(products)
        self._by_key = {p.key: p for p in self.products}

    @classmethod
    def from_json(cls, path: Path) -> "QuickProductCatalog":
        """Load a JSON list of products (camelCase or snake_case keys)."""
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        if isinstance(raw, dict):
            raw = raw.get("products", [])
        catalog = cls(QuickProduct.model_validate(p) for p in raw)
        logger.info("Loaded %d quick-order products from %s", len(catalog.products), path)
        return catalog

    def __len__(self) -> int:
        return len(self.products)

    def get(self, key: str) -> QuickProduct:
        try:
            return self._by_key[key]
        except KeyError:
            raise UnknownProduct(key) from None

    def for_location(self, tokens: Iterable[str]) -> list[QuickProduct]:
        """
        Products sellable at a location described by city/area tokens.
        Products without city tokens are sellable everywhere.
        """
        wanted = {t.strip().lower() for t in tokens if t and t.strip()}
        if not wanted:
            return list(self.products)
        return [
            p for p in self.products
            if not p.city_tokens or wanted & {t.lower() for t in p.city_tokens}
        ]


def _default_packaging(product: QuickProduct, bags_mode: bool) -> str:
    if product.default_packaging:
        return product.default_packaging
    if bags_mode and product.bag_size_kg:
        return f"{product.bag_size_kg.normalize():f}kg Bags"
    return "Loose"


def build_quick_item(product: QuickProduct, entry: QuickOrderItemInput) -> OrderItem:
    """
    Turn one quick-order pick into an OrderItem.

    Bags mode (entry.bags set): quantity = bags × product.bag_size_kg.
    Kg mode: quantity = entry.quantity_kg. Quantity stays the source of
    truth; bag_pieces is kept for display.
    """
    if entry.bags is not None:
        if not product.bag_size_kg:
            raise InvalidQuickItem(f"Bags option not available for product '{product.key}'")
        if entry.bags <= 0:
            raise InvalidQuickItem(f"Enter a valid number of bags for '{product.key}'")
        quantity = bag_quantity(entry.bags, product.bag_size_kg)
        bags_mode = True
    else:
        if entry.quantity_kg is None or entry.quantity_kg <= 0:
            raise InvalidQuickItem(f"Enter a valid weight in kg for '{product.key}'")
        quantity = to_decimal(entry.quantity_kg)
        bags_mode = False

    return OrderItem(
        product_name=product.name,
        product_key=product.key,
        quantity=quantity,
        unit="KG",
        rate_per_unit=product.price_per_kg,
        total_amount=compute_line_total(quantity, product.price_per_kg),
        packaging=entry.packaging or _default_packaging(product, bags_mode),
        is_bag_selection=bags_mode,
        bag_pieces=entry.bags if bags_mode else None,
    )


def build_quick_items(
    catalog: QuickProductCatalog,
    entries: Iterable[QuickOrderItemInput],
) -> list[OrderItem]:
    """Build items in pick order. Picking the same product twice is refused."""
    items = []
    seen: set[str] = set()
    for entry in entries:
        if entry.product_key in seen:
            raise InvalidQuickItem(f"Product '{entry.product_key}' was picked more than once")
        seen.add(entry.product_key)
        items.append(build_quick_item(catalog.get(entry.product_key), entry))
    return items


def bag_quantity(bag_pieces: int, bag_size_kg: Optional[Decimal]) -> Decimal:
    """Kilograms represented by *bag_pieces* bags of *bag_size_kg* each."""
    if not bag_size_kg:
        raise InvalidQuickItem("Bag size is unknown for this item")
    return to_decimal(bag_pieces) * to_decimal(bag_size_kg)
