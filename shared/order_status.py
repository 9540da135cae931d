"""
Order lifecycle state machine, shared by the order API and the storefront client.

    pending -> accepted -> preparing -> out_for_delivery -> delivered

Any non-terminal status may also move to cancelled. delivered and cancelled
are terminal.
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class IllegalTransitionError(ValueError):
    """Raised when a status change does not follow the lifecycle."""

    def __init__(self, current: OrderStatus, target: OrderStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal status transition {current.value} -> {target.value}")


FORWARD_CHAIN: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

ACTIVE_STATUSES = frozenset(
    {OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY}
)

_NEXT: dict[OrderStatus, OrderStatus] = {
    current: following for current, following in zip(FORWARD_CHAIN, FORWARD_CHAIN[1:])
}

STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.ACCEPTED: "Accepted",
    OrderStatus.PREPARING: "Preparing",
    OrderStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def next_status(status: OrderStatus) -> OrderStatus | None:
    """The single forward step from ``status``, or None for terminal states."""
    return _NEXT.get(status)


def can_cancel(status: OrderStatus) -> bool:
    return not is_terminal(status)


def is_legal_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if target is OrderStatus.CANCELLED:
        return can_cancel(current)
    return next_status(current) is target


def ensure_transition(current: OrderStatus, target: OrderStatus) -> OrderStatus:
    if not is_legal_transition(current, target):
        raise IllegalTransitionError(current, target)
    return target
