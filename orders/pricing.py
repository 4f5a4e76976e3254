"""
Order pricing: line totals, subtotal, discount, tax, grand total and
payment status.

All money is handled as Decimal rounded to two places (paise) with
ROUND_HALF_UP at every step, so the sum of line totals never drifts the way
float accumulation does and the result does not depend on item order.

The four money values (subtotal, discount, tax, total) are only ever
produced together by price_items() / apply_pricing(); callers should not
stitch a snapshot together from individually recomputed pieces.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from models.order import Order, OrderItem
from models.result import PricingSnapshot
from .errors import InvalidDiscount, InvalidTax

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
_PAISE = Decimal("0.01")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert an int/float/str/Decimal to Decimal without float artefacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(_PAISE, rounding=ROUND_HALF_UP)


# ------------------------------------------------------------------
# Individual computations
# ------------------------------------------------------------------

def compute_line_total(quantity: Number, rate_per_unit: Number) -> Decimal:
    """quantity × rate_per_unit, rounded to paise."""
    return round_money(to_decimal(quantity) * to_decimal(rate_per_unit))


def compute_subtotal(items: Iterable[OrderItem]) -> Decimal:
    """
    Sum of recomputed line totals. The items' own total_amount values are
    ignored, they may be stale.
    """
    return round_money(sum(
        (compute_line_total(item.quantity, item.rate_per_unit) for item in items),
        ZERO,
    ))


def compute_discount_amount(
    subtotal: Number,
    discount_percentage: Number = 0,
    discount_fixed: Number = 0,
) -> Decimal:
    """
    Percentage discount when discount_percentage > 0, otherwise the fixed
    amount. The result is clamped to [0, subtotal].
    """
    subtotal = to_decimal(subtotal)
    pct = to_decimal(discount_percentage)
    fixed = to_decimal(discount_fixed)

    if pct < 0 or pct > HUNDRED:
        raise InvalidDiscount(f"Discount percentage must be between 0 and 100, got {pct}")
    if fixed < 0:
        raise InvalidDiscount(f"Fixed discount cannot be negative, got {fixed}")

    amount = subtotal * pct / HUNDRED if pct > 0 else fixed
    if amount > subtotal:
        logger.debug("Discount %s exceeds subtotal %s, clamping", amount, subtotal)
        amount = subtotal
    return round_money(max(ZERO, amount))


def compute_tax_amount(subtotal: Number, is_taxable: bool, tax_percentage: Number = 0) -> Decimal:
    pct = to_decimal(tax_percentage)
    if pct < 0 or pct > HUNDRED:
        raise InvalidTax(f"Tax percentage must be between 0 and 100, got {pct}")
    if not is_taxable:
        return round_money(ZERO)
    return round_money(to_decimal(subtotal) * pct / HUNDRED)


def compute_total(subtotal: Number, discount_amount: Number, tax_amount: Number) -> Decimal:
    """subtotal - discount + tax, floored at 0."""
    total = to_decimal(subtotal) - to_decimal(discount_amount) + to_decimal(tax_amount)
    if total < 0:
        logger.warning("Negative order total %s floored to 0", total)
        total = ZERO
    return round_money(total)


def derive_payment_status(paid_amount: Number, total: Number) -> str:
    """
    'paid' once paid_amount covers the total (so a zero total is paid),
    'partial' for anything in between, 'pending' when nothing has been
    paid. 'overdue' is never derived here; it is set by time-based logic
    elsewhere.
    """
    paid = to_decimal(paid_amount)
    if paid >= to_decimal(total):
        return "paid"
    if paid <= 0:
        return "pending"
    return "partial"


# ------------------------------------------------------------------
# Full snapshot
# ------------------------------------------------------------------

def price_items(
    items: Iterable[OrderItem],
    discount_percentage: Number = 0,
    discount_fixed: Number = 0,
    is_taxable: bool = False,
    tax_percentage: Number = 0,
    paid_amount: Number = 0,
) -> PricingSnapshot:
    """Compute every financial figure from a single pass over *items*."""
    subtotal = compute_subtotal(list(items))
    discount_amount = compute_discount_amount(subtotal, discount_percentage, discount_fixed)
    tax_amount = compute_tax_amount(subtotal, is_taxable, tax_percentage)
    total = compute_total(subtotal, discount_amount, tax_amount)
    paid = round_money(paid_amount)
    return PricingSnapshot(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
        paid_amount=paid,
        payment_status=derive_payment_status(paid, total),
    )


def apply_pricing(
    order: Order,
    discount_fixed: Optional[Number] = None,
    paid_amount: Optional[Number] = None,
) -> Order:
    """
    Return a copy of *order* with item totals and all money fields
    recomputed together. The input order is left untouched.

    When discount_fixed is None the order's own `discount_fixed` input is
    used; otherwise the given value replaces it on the copy. An existing
    'overdue' payment status is kept unless the order is now fully paid.
    """
    fixed = order.discount_fixed if discount_fixed is None else round_money(discount_fixed)
    items = [
        item.model_copy(update={
            "total_amount": compute_line_total(item.quantity, item.rate_per_unit),
        })
        for item in order.items
    ]
    snapshot = price_items(
        items,
        discount_percentage=order.discount_percentage,
        discount_fixed=fixed,
        is_taxable=order.is_taxable,
        tax_percentage=order.tax_percentage,
        paid_amount=order.paid_amount if paid_amount is None else paid_amount,
    )

    payment_status = snapshot.payment_status
    if order.payment_status == "overdue" and payment_status != "paid":
        payment_status = "overdue"

    return order.model_copy(update={
        "items": items,
        "subtotal": snapshot.subtotal,
        "discount": snapshot.discount_amount,
        "discount_fixed": fixed,
        "tax_amount": snapshot.tax_amount,
        "total_amount": snapshot.total,
        "paid_amount": snapshot.paid_amount,
        "payment_status": payment_status,
    })


def format_currency(amount: Number, symbol: str = "₹") -> str:
    """Display helper: whole rupees with thousands separators, e.g. '₹1,235'."""
    value = to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,}"
