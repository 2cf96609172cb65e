"""
Order State Machine

This module is the SINGLE SOURCE OF TRUTH for all order status transitions.
OrderService validates every lifecycle operation here before touching the
database.

UNPAID -> PAID -> SHIPPED -> COMPLETED
UNPAID -> CANCELLED
PAID | SHIPPED -> REFUND_PENDING -> REFUNDED | REFUND_REJECTED
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List

from marketplace.core.exceptions import InvalidStateError
from marketplace.models.order import OrderStatus


class OrderAction(str, Enum):
    """Lifecycle operations that change an order's status."""
    PAY = "pay"
    SHIP = "ship"
    RECEIVE = "receive"
    CANCEL = "cancel"
    REQUEST_REFUND = "request_refund"
    APPROVE_REFUND = "approve_refund"
    REJECT_REFUND = "reject_refund"


@dataclass(frozen=True)
class Transition:
    sources: FrozenSet[OrderStatus]
    target: OrderStatus
    releases_stock: bool = False


# =============================================================================
# TRANSITION RULES
# =============================================================================

ORDER_TRANSITIONS: Dict[OrderAction, Transition] = {
    OrderAction.PAY: Transition(
        sources=frozenset({OrderStatus.UNPAID}),
        target=OrderStatus.PAID,
    ),
    OrderAction.SHIP: Transition(
        sources=frozenset({OrderStatus.PAID}),
        target=OrderStatus.SHIPPED,
    ),
    OrderAction.RECEIVE: Transition(
        sources=frozenset({OrderStatus.SHIPPED}),
        target=OrderStatus.COMPLETED,
    ),
    OrderAction.CANCEL: Transition(
        sources=frozenset({OrderStatus.UNPAID}),
        target=OrderStatus.CANCELLED,
        releases_stock=True,
    ),
    OrderAction.REQUEST_REFUND: Transition(
        sources=frozenset({OrderStatus.PAID, OrderStatus.SHIPPED}),
        target=OrderStatus.REFUND_PENDING,
    ),
    OrderAction.APPROVE_REFUND: Transition(
        sources=frozenset({OrderStatus.REFUND_PENDING}),
        target=OrderStatus.REFUNDED,
        releases_stock=True,
    ),
    OrderAction.REJECT_REFUND: Transition(
        sources=frozenset({OrderStatus.REFUND_PENDING}),
        target=OrderStatus.REFUND_REJECTED,
    ),
}

# Human-readable action names, written to the status history
ACTION_LABELS: Dict[OrderAction, str] = {
    OrderAction.PAY: "Payment received",
    OrderAction.SHIP: "Shipped",
    OrderAction.RECEIVE: "Receipt confirmed",
    OrderAction.CANCEL: "Cancelled",
    OrderAction.REQUEST_REFUND: "Refund requested",
    OrderAction.APPROVE_REFUND: "Refund approved",
    OrderAction.REJECT_REFUND: "Refund rejected",
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_apply(action: OrderAction, current_status: OrderStatus) -> bool:
    """Check if an action is allowed from the given status."""
    return OrderStatus(current_status) in ORDER_TRANSITIONS[action].sources


def allowed_actions(current_status: OrderStatus) -> List[OrderAction]:
    """Actions that are legal from the given status, in declaration order."""
    return [action for action in OrderAction if can_apply(action, current_status)]


def resolve_transition(action: OrderAction, current_status: OrderStatus) -> Transition:
    """
    Look up the transition for an action. Raises InvalidStateError if the
    action is not legal from current_status.
    """
    current_status = OrderStatus(current_status)
    transition = ORDER_TRANSITIONS[action]

    if current_status not in transition.sources:
        if current_status.is_terminal:
            raise InvalidStateError(
                f"Order is {current_status.name}, a terminal state; cannot {action.value}",
                details={"status": current_status.name, "action": action.value},
            )
        expected = ", ".join(sorted(s.name for s in transition.sources))
        raise InvalidStateError(
            f"Cannot {action.value} an order in status {current_status.name}; expected {expected}",
            details={"status": current_status.name, "action": action.value},
        )

    return transition
