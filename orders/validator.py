"""
Order and order-item validation.

Checks:
  Item:   product name, quantity > 0, unit, rate per unit > 0
  Order:  customer, at least one item, payment terms, plus every item

Every check runs; nothing short-circuits, so the caller sees all problems
at once. An order with any issue must not be sent to persistence.
"""
import logging

from models.order import Order, OrderItem
from models.result import ValidationIssue

logger = logging.getLogger(__name__)


def validate_item(item: OrderItem) -> list[ValidationIssue]:
    issues = []

    if not (item.product_name or "").strip():
        issues.append(ValidationIssue(
            code="missing_product_name",
            message="Product name is required",
            field="product_name",
        ))

    if item.quantity is None or item.quantity <= 0:
        issues.append(ValidationIssue(
            code="invalid_quantity",
            message="Quantity must be greater than 0",
            field="quantity",
        ))

    if not (item.unit or "").strip():
        issues.append(ValidationIssue(
            code="missing_unit",
            message="Unit is required",
            field="unit",
        ))

    if item.rate_per_unit is None or item.rate_per_unit <= 0:
        issues.append(ValidationIssue(
            code="invalid_rate",
            message="Rate per unit must be greater than 0",
            field="rate_per_unit",
        ))

    return issues


def validate_order(order: Order) -> list[ValidationIssue]:
    issues = []

    if not (order.customer or "").strip():
        issues.append(ValidationIssue(
            code="missing_customer",
            message="Customer is required",
            field="customer",
        ))

    if not order.items:
        issues.append(ValidationIssue(
            code="missing_items",
            message="At least one order item is required",
            field="items",
        ))

    if not order.payment_terms:
        issues.append(ValidationIssue(
            code="missing_payment_terms",
            message="Payment terms are required",
            field="payment_terms",
        ))

    for i, item in enumerate(order.items):
        position = i + 1
        for issue in validate_item(item):
            issues.append(issue.model_copy(update={
                "message": f"Item {position}: {issue.message}",
                "field": f"items[{i}].{issue.field}",
                "item_position": position,
            }))

    if issues:
        logger.debug("Order %s failed validation with %d issue(s)", order.id, len(issues))
    return issues
