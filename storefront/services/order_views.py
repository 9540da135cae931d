"""
Read-only projections of the canonical Order for the customer tracker and the
courier dashboard. Both are derived purely from the last fetched status.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from shared.order_status import (
    ACTIVE_STATUSES,
    FORWARD_CHAIN,
    STATUS_LABELS,
    OrderStatus,
    can_cancel,
    is_terminal,
    next_status,
)
from shared.schemas import MenuItem, Order

STEP_DESCRIPTIONS: dict[OrderStatus, tuple[str, str]] = {
    OrderStatus.PENDING: ("Order Placed", "Your order has been received"),
    OrderStatus.ACCEPTED: ("Accepted", "Restaurant accepted your order"),
    OrderStatus.PREPARING: ("Preparing", "Your food is being prepared"),
    OrderStatus.OUT_FOR_DELIVERY: ("Out for Delivery", "Your order is on the way"),
    OrderStatus.DELIVERED: ("Delivered", "Enjoy your meal!"),
}

ACTION_LABELS: dict[OrderStatus, str] = {
    OrderStatus.ACCEPTED: "Accept Order",
    OrderStatus.PREPARING: "Start Preparing",
    OrderStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    OrderStatus.DELIVERED: "Mark Delivered",
}

FILTERS: tuple[str, ...] = (
    "all",
    OrderStatus.PENDING.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.CANCELLED.value,
)


def short_order_number(order_id: str) -> str:
    return order_id[-8:]


def status_label(status: OrderStatus) -> str:
    return STATUS_LABELS[status]


@dataclass(frozen=True)
class LineView:
    item_name: str
    quantity: int
    subtotal: Decimal


@dataclass(frozen=True)
class TrackerStep:
    status: OrderStatus
    label: str
    description: str
    completed: bool
    current: bool

    @property
    def upcoming(self) -> bool:
        return not (self.completed or self.current)


@dataclass(frozen=True)
class NextAction:
    label: str
    target: OrderStatus


@dataclass(frozen=True)
class CustomerOrderView:
    order_id: str
    order_number: str
    status: OrderStatus
    status_label: str
    is_cancelled: bool
    steps: tuple[TrackerStep, ...]
    lines: tuple[LineView, ...]
    total: Decimal
    placed_at: datetime


@dataclass(frozen=True)
class CourierOrderView:
    order_id: str
    order_number: str
    status: OrderStatus
    badge: str
    next_action: NextAction | None
    can_cancel: bool
    is_active: bool
    lines: tuple[LineView, ...]
    total: Decimal
    placed_at: datetime


def _lines(order: Order) -> tuple[LineView, ...]:
    return tuple(
        LineView(item_name=line.item_name, quantity=line.quantity, subtotal=line.subtotal)
        for line in order.items
    )


def tracker_steps(status: OrderStatus) -> tuple[TrackerStep, ...]:
    """Five-step progress for the customer; a cancelled order has no current step."""
    current_index = -1 if status is OrderStatus.CANCELLED else FORWARD_CHAIN.index(status)
    return tuple(
        TrackerStep(
            status=step,
            label=STEP_DESCRIPTIONS[step][0],
            description=STEP_DESCRIPTIONS[step][1],
            completed=index < current_index,
            current=index == current_index,
        )
        for index, step in enumerate(FORWARD_CHAIN)
    )


def next_action(status: OrderStatus) -> NextAction | None:
    target = next_status(status)
    if target is None:
        return None
    return NextAction(label=ACTION_LABELS[target], target=target)


def customer_view(order: Order) -> CustomerOrderView:
    return CustomerOrderView(
        order_id=order.order_id,
        order_number=short_order_number(order.order_id),
        status=order.status,
        status_label=status_label(order.status),
        is_cancelled=order.status is OrderStatus.CANCELLED,
        steps=tracker_steps(order.status),
        lines=_lines(order),
        total=order.total_price,
        placed_at=order.created_at,
    )


def courier_view(order: Order) -> CourierOrderView:
    return CourierOrderView(
        order_id=order.order_id,
        order_number=short_order_number(order.order_id),
        status=order.status,
        badge=status_label(order.status),
        next_action=next_action(order.status),
        can_cancel=can_cancel(order.status),
        is_active=not is_terminal(order.status),
        lines=_lines(order),
        total=order.total_price,
        placed_at=order.created_at,
    )


# ---------------------------------------------------------------------------
# Courier board
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BoardStats:
    total: int
    pending: int
    active: int


def filter_orders(orders: Iterable[Order], status_filter: str = "all") -> list[Order]:
    if status_filter == "all":
        return list(orders)
    return [order for order in orders if order.status.value == status_filter]


def filter_counts(orders: Iterable[Order]) -> dict[str, int]:
    orders = list(orders)
    return {name: len(filter_orders(orders, name)) for name in FILTERS}


def sort_for_board(orders: Iterable[Order]) -> list[Order]:
    """Orders still in progress first, newest first within each group."""
    return sorted(orders, key=lambda order: (is_terminal(order.status), -order.timestamp))


def board_stats(orders: Iterable[Order]) -> BoardStats:
    orders = list(orders)
    return BoardStats(
        total=len(orders),
        pending=sum(1 for order in orders if order.status is OrderStatus.PENDING),
        active=sum(1 for order in orders if order.status in ACTIVE_STATUSES),
    )


def courier_board(orders: Iterable[Order], status_filter: str = "all") -> list[CourierOrderView]:
    return [courier_view(order) for order in sort_for_board(filter_orders(orders, status_filter))]


# ---------------------------------------------------------------------------
# Menu and history
# ---------------------------------------------------------------------------


def group_by_category(items: Iterable[MenuItem]) -> dict[str, list[MenuItem]]:
    """Sections in first-seen category order. Unavailable items stay in place for the admin menu."""
    groups: dict[str, list[MenuItem]] = {}
    for item in items:
        groups.setdefault(item.category, []).append(item)
    return groups


def customer_history(orders: Iterable[Order]) -> list[CustomerOrderView]:
    return [customer_view(order) for order in sorted(orders, key=lambda order: order.timestamp, reverse=True)]
