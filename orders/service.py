"""
Order service orchestrator.

OrderService ties pricing, validation, the status machine, permissions and
a persistence collaborator together:

  1. Read the latest order snapshot from the repository
  2. Apply the requested change in memory (pure functions)
  3. Reprice everything together and validate
  4. Hand the result to the repository, which commits it

The repository is either OrderDatabase (local SQLite) or OrderApiClient
(remote REST API); both satisfy OrderRepository.
"""
import logging
from typing import Any, Iterable, Optional, Protocol

from models.catalog import QuickOrderItemInput
from models.order import Order
from . import status_machine
from .errors import InvalidQuickItem, OrderLocked, OrderValidationFailed, PermissionDenied
from .permissions import ORDERS_CREATE, ORDERS_READ, ORDERS_UPDATE
from .pricing import apply_pricing, round_money
from .quick_order import QuickProductCatalog, build_quick_items
from .validator import validate_order

logger = logging.getLogger(__name__)

# Once an order reaches one of these it can no longer be edited.
LOCKED_STATUSES = frozenset({"delivered", "completed", "cancelled", "rejected"})

# Fields a caller may change through update_order().
EDITABLE_FIELDS = frozenset({
    "customer", "items", "discount_percentage", "discount_fixed", "tax_percentage", "is_taxable",
    "paid_amount", "payment_terms", "priority", "notes", "godown",
    "delivery_instructions",
})

# Money fields that always travel together in an update patch.
_FINANCIAL_FIELDS = (
    "items", "subtotal", "discount", "discount_fixed", "discount_percentage", "tax_amount",
    "tax_percentage", "is_taxable", "total_amount", "paid_amount", "payment_status",
)


class OrderRepository(Protocol):
    def get_order(self, order_id: str) -> Order: ...
    def create_order(self, order: Order) -> Order: ...
    def update_order(self, order_id: str, patch: dict) -> Order: ...
    def transition_order(self, order_id: str, action: str, notes: Optional[str] = None) -> Order: ...


class OrderService:
    """
    Usage:
        service = OrderService(OrderDatabase(path), roles.permissions_for("manager"))
        order = service.create_order(draft)
        order = service.transition(order.id, "approve")
    """

    def __init__(self, repository: OrderRepository, permissions: Any) -> None:
        self.repository = repository
        self.permissions = permissions

    def _require(self, permission: str, action: str) -> None:
        if not status_machine.has_permission(self.permissions, permission):
            raise PermissionDenied(action, permission)

    @staticmethod
    def _check_valid(order: Order) -> None:
        issues = validate_order(order)
        if issues:
            logger.warning("Refusing to persist order %s: %d issue(s)", order.id or "(new)", len(issues))
            raise OrderValidationFailed(issues)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_order(self, order: Order) -> Order:
        """Price, validate and persist a new order in 'pending' status."""
        self._require(ORDERS_CREATE, "create")
        draft = apply_pricing(order.model_copy(update={"status": "pending", "status_notes": None}))
        self._check_valid(draft)
        created = self.repository.create_order(draft)
        logger.info("Created order %s for customer %s, total %s",
                    created.order_number or created.id, created.customer, created.total_amount)
        return created

    def create_quick_order(
        self,
        customer: str,
        entries: Iterable[QuickOrderItemInput],
        catalog: QuickProductCatalog,
        **fields: Any,
    ) -> Order:
        """
        Create an order from quick-order picks. Extra keyword arguments are
        Order fields (payment_terms, priority, paid_amount, notes, ...).
        """
        entries = list(entries)
        if not entries:
            raise InvalidQuickItem("Add at least one item")
        items = build_quick_items(catalog, entries)
        order = Order(customer=customer, items=items, **fields)
        return self.create_order(order)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update_order(self, order_id: str, **changes: Any) -> Order:
        """
        Apply *changes* to the latest snapshot of the order, reprice it and
        persist the full financial patch in one update.
        """
        self._require(ORDERS_UPDATE, "update")
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        current = self.repository.get_order(order_id)
        if current.status in LOCKED_STATUSES:
            raise OrderLocked(current.id, current.status)

        edited = Order.model_validate({**current.model_dump(), **changes})
        repriced = apply_pricing(edited)
        self._check_valid(repriced)

        patch = _financial_patch(repriced)
        patch.update({k: getattr(repriced, k) for k in changes if k not in patch})
        updated = self.repository.update_order(current.id, patch)
        logger.info("Updated order %s: %s", current.id, ", ".join(sorted(changes)) or "repriced")
        return updated

    def record_payment(self, order_id: str, amount: Any) -> Order:
        """
        Add *amount* to the paid amount. Payment status is derived from the
        latest total, never a cached one.
        """
        self._require(ORDERS_UPDATE, "record_payment")
        amount = round_money(amount)
        if amount <= 0:
            raise ValueError(f"Payment amount must be greater than 0, got {amount}")

        current = self.repository.get_order(order_id)
        if current.status in {"cancelled", "rejected"}:
            raise OrderLocked(current.id, current.status)

        repriced = apply_pricing(current, paid_amount=current.paid_amount + amount)
        logger.info("Order %s payment %s recorded, paid %s of %s (%s)",
                    current.id, amount, repriced.paid_amount, repriced.total_amount, repriced.payment_status)
        return self.repository.update_order(current.id, _financial_patch(repriced))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        self._require(ORDERS_READ, "read")
        return self.repository.get_order(order_id)

    def list_orders(self, **filters: Any) -> list:
        """Passes *filters* through to the repository's list_orders()."""
        self._require(ORDERS_READ, "list")
        return self.repository.list_orders(**filters)

    def get_stats(self) -> dict:
        self._require(ORDERS_READ, "stats")
        return self.repository.get_stats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def available_actions(self, order_id: str) -> list[str]:
        return status_machine.available_actions(self.get_order(order_id), self.permissions)

    def transition(self, order_id: str, action: str, notes: Optional[str] = None) -> Order:
        """Run *action* against the latest snapshot and persist the new status."""
        current = self.repository.get_order(order_id)
        result = status_machine.transition(current, action, self.permissions, notes)
        committed = self.repository.transition_order(current.id, action, result.status_notes)
        if committed.status != result.status:
            logger.warning("Order %s: expected status %s after %s, store returned %s",
                           current.id, result.status, action, committed.status)
        return committed


def _financial_patch(order: Order) -> dict:
    return {name: getattr(order, name) for name in _FINANCIAL_FIELDS}
