"""
Courier desk: the staff side of the order lifecycle.

Every action is computed from the status last fetched from the backend and is
refused locally when it would not be a legal transition. The backend checks
again and answers 409 if the order moved in the meantime.
"""

import logging

from shared.order_status import (
    IllegalTransitionError,
    OrderStatus,
    can_cancel,
    ensure_transition,
    next_status,
)
from shared.schemas import Order
from storefront.services.courier_access import CourierAccess
from storefront.services.order_views import (
    BoardStats,
    CourierOrderView,
    board_stats,
    courier_board,
    filter_counts,
)
from storefront.services.queries import QueryDefinition, StorefrontQueries

logger = logging.getLogger(__name__)


class CourierAccessDenied(PermissionError):
    """The courier PIN has not been entered in this session."""

    def __init__(self) -> None:
        super().__init__("Courier access requires the staff PIN")


class CourierDesk:
    def __init__(self, access: CourierAccess, queries: StorefrontQueries) -> None:
        self._access = access
        self._queries = queries

    @property
    def has_access(self) -> bool:
        return self._access.has_access

    def unlock(self, pin: str) -> bool:
        return self._access.grant(pin)

    def lock(self) -> None:
        self._access.revoke()

    def _require_access(self) -> None:
        if not self._access.has_access:
            raise CourierAccessDenied()

    # ------------------------------------------------------------------
    # Board
    # ------------------------------------------------------------------

    def orders(self) -> QueryDefinition:
        self._require_access()
        return self._queries.all_orders()

    def board(self, orders: list[Order], status_filter: str = "all") -> list[CourierOrderView]:
        return courier_board(orders, status_filter)

    def counts(self, orders: list[Order]) -> dict[str, int]:
        return filter_counts(orders)

    def stats(self, orders: list[Order]) -> BoardStats:
        return board_stats(orders)

    def is_busy(self, order_id: str) -> bool:
        """True while any write for this order is in flight."""
        if self._queries.cancel_order.is_pending_for(order_id) or self._queries.delete_order.is_pending_for(order_id):
            return True
        return any(self._queries.update_order_status.is_pending_for(order_id, status) for status in OrderStatus)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def advance(self, order: Order) -> OrderStatus:
        """Move the order one step along the forward chain."""
        self._require_access()
        target = next_status(order.status)
        if target is None:
            raise IllegalTransitionError(order.status, order.status)
        ensure_transition(order.status, target)
        await self._queries.update_order_status.mutate_async(order.order_id, target)
        logger.info(
            "Order advanced",
            extra={"order_id": order.order_id, "from_status": order.status.value, "to_status": target.value},
        )
        return target

    async def cancel(self, order: Order) -> None:
        self._require_access()
        if not can_cancel(order.status):
            raise IllegalTransitionError(order.status, OrderStatus.CANCELLED)
        await self._queries.cancel_order.mutate_async(order.order_id)
        logger.info("Order cancelled", extra={"order_id": order.order_id, "from_status": order.status.value})

    async def delete(self, order_id: str) -> bool:
        """Remove the order for good. Not the same as cancelling it."""
        self._require_access()
        deleted = await self._queries.delete_order.mutate_async(order_id)
        logger.info("Order deleted", extra={"order_id": order_id, "deleted": deleted})
        return deleted
