"""
Order lifecycle state machine.

  pending → approved → processing → ready → dispatched → delivered → completed
  rejected / cancelled are terminal side exits.

Whether an action is available depends only on the order's current status
and the actor's permissions. The machine does no I/O: it returns a new order
value and leaves persistence to the caller.
"""
import logging
from typing import Any, NamedTuple, Optional

from models.order import Order
from .errors import InvalidTransition, MissingNotes, PermissionDenied

logger = logging.getLogger(__name__)

STATUS_PENDING    = "pending"
STATUS_APPROVED   = "approved"
STATUS_PROCESSING = "processing"
STATUS_READY      = "ready"
STATUS_DISPATCHED = "dispatched"
STATUS_DELIVERED  = "delivered"
STATUS_COMPLETED  = "completed"
STATUS_CANCELLED  = "cancelled"
STATUS_REJECTED   = "rejected"

ALL_STATUSES = (
    STATUS_PENDING, STATUS_APPROVED, STATUS_PROCESSING, STATUS_READY,
    STATUS_DISPATCHED, STATUS_DELIVERED, STATUS_COMPLETED,
    STATUS_CANCELLED, STATUS_REJECTED,
)
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED, STATUS_REJECTED})

PERMISSION_APPROVE = "orders.approve"
PERMISSION_UPDATE  = "orders.update"


class Transition(NamedTuple):
    action: str
    permission: str
    sources: frozenset
    target: str
    requires_notes: bool = False


# Table order is the order in which actions are offered to the user.
TRANSITIONS: dict[str, Transition] = {
    t.action: t for t in (
        Transition("approve",         PERMISSION_APPROVE, frozenset({STATUS_PENDING}),    STATUS_APPROVED),
        Transition("reject",          PERMISSION_APPROVE, frozenset({STATUS_PENDING}),    STATUS_REJECTED, True),
        Transition("startProduction", PERMISSION_UPDATE,  frozenset({STATUS_APPROVED}),   STATUS_PROCESSING),
        Transition("markReady",       PERMISSION_UPDATE,  frozenset({STATUS_PROCESSING}), STATUS_READY),
        Transition("dispatch",        PERMISSION_UPDATE,  frozenset({STATUS_READY}),      STATUS_DISPATCHED),
        Transition("markDelivered",   PERMISSION_UPDATE,  frozenset({STATUS_DISPATCHED}), STATUS_DELIVERED),
        Transition("complete",        PERMISSION_UPDATE,  frozenset({STATUS_DELIVERED}),  STATUS_COMPLETED),
        Transition(
            "cancel", PERMISSION_UPDATE,
            frozenset({STATUS_PENDING, STATUS_APPROVED, STATUS_PROCESSING}),
            STATUS_CANCELLED,
        ),
    )
}

ALL_ACTIONS = tuple(TRANSITIONS)

# Exit actions are allowed on an order that lost all its items.
_EXIT_ACTIONS = frozenset({"reject", "cancel"})


def has_permission(permissions: Any, name: str) -> bool:
    """
    Accept either a permission collaborator exposing has_permission(name)
    or a plain container of permission names.
    """
    check = getattr(permissions, "has_permission", None)
    if callable(check):
        return bool(check(name))
    return name in permissions


def get_transition(action: str, status: Optional[str] = None) -> Transition:
    try:
        return TRANSITIONS[action]
    except KeyError:
        raise InvalidTransition(action, status, f"Unknown order action '{action}'") from None


def available_actions(order: Order, permissions: Any) -> list[str]:
    """Actions the actor may run on *order* right now, in table order."""
    return [
        t.action for t in TRANSITIONS.values()
        if order.status in t.sources and has_permission(permissions, t.permission)
    ]


def transition(
    order: Order,
    action: str,
    permissions: Any,
    notes: Optional[str] = None,
) -> Order:
    """
    Validate *action* against the order's status and the actor's
    permissions and return a copy of the order in the resulting status.

    Raises InvalidTransition, PermissionDenied or MissingNotes.
    """
    t = get_transition(action, order.status)

    if not has_permission(permissions, t.permission):
        raise PermissionDenied(action, t.permission)

    if order.status not in t.sources:
        raise InvalidTransition(action, order.status)

    if not order.items and action not in _EXIT_ACTIONS:
        raise InvalidTransition(
            action, order.status, f"Order has no items and cannot move to '{t.target}'",
        )

    clean_notes = notes.strip() if notes else ""
    if t.requires_notes and not clean_notes:
        raise MissingNotes(action)

    logger.info("Order %s: %s → %s (%s)", order.id, order.status, t.target, action)
    return order.model_copy(update={
        "status": t.target,
        "status_notes": clean_notes or None,
    })
