import logging
import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from order_api.models.order import Order, OrderLine
from shared import schemas
from shared.order_status import OrderStatus, ensure_transition

logger = logging.getLogger(__name__)


class OrderNotFound(LookupError):
    """No order with the given id."""


class DuplicateOrderError(ValueError):
    """An order with the submitted id already exists."""


class OrderAccessDenied(PermissionError):
    """The caller neither owns the order nor holds the staff role."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_response(order: Order) -> schemas.Order:
    return schemas.Order(
        order_id=order.order_id,
        customer_id=order.customer_id,
        items=tuple(
            schemas.OrderLine(item_name=line.item_name, quantity=line.quantity, price=line.unit_price)
            for line in order.lines
        ),
        total_price=order.total_price,
        status=order.status,
        timestamp=order.timestamp,
    )


async def _fetch_order(db: AsyncSession, order_id: str) -> Order | None:
    result = await db.execute(
        select(Order).where(Order.order_id == order_id).options(selectinload(Order.lines))
    )
    return result.scalars().first()


async def _require_order(db: AsyncSession, order_id: str) -> Order:
    order = await _fetch_order(db, order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_order(
    db: AsyncSession,
    customer_id: str,
    order_data: schemas.OrderInput,
    request_id: str,
) -> schemas.Order:
    if await db.get(Order, order_data.order_id) is not None:
        raise DuplicateOrderError(f"Order {order_data.order_id} already exists")

    # Total is frozen at submission from the snapshot prices on each line
    order = Order(
        order_id=order_data.order_id,
        customer_id=customer_id,
        status=OrderStatus.PENDING,
        total_price=order_data.total,
        timestamp=time.time_ns(),
    )
    order.lines = [
        OrderLine(
            line_index=index,
            item_name=line.item_name,
            quantity=line.quantity,
            unit_price=line.price,
        )
        for index, line in enumerate(order_data.items)
    ]
    db.add(order)
    await db.commit()

    logger.info(
        "Order persisted",
        extra={
            "order_id": order.order_id,
            "request_id": request_id,
            "amount": float(order.total_price),
            "item_count": len(order.lines),
        },
    )
    return _build_response(order)


async def get_order(
    db: AsyncSession,
    order_id: str,
    principal: str,
    is_staff: bool,
) -> schemas.Order:
    order = await _require_order(db, order_id)
    if not is_staff and order.customer_id != principal:
        raise OrderAccessDenied(order_id)
    return _build_response(order)


async def list_orders(db: AsyncSession, customer_id: str | None = None) -> list[schemas.Order]:
    query = select(Order).options(selectinload(Order.lines)).order_by(Order.timestamp)
    if customer_id is not None:
        query = query.where(Order.customer_id == customer_id)
    result = await db.execute(query)
    return [_build_response(order) for order in result.scalars().all()]


async def update_status(
    db: AsyncSession,
    order_id: str,
    target: OrderStatus,
    request_id: str,
) -> schemas.Order:
    order = await _require_order(db, order_id)
    previous = order.status
    order.status = ensure_transition(previous, target)
    await db.commit()

    logger.info(
        "Order status changed",
        extra={
            "order_id": order_id,
            "request_id": request_id,
            "from_status": previous.value,
            "to_status": target.value,
        },
    )
    return _build_response(order)


async def cancel_order(db: AsyncSession, order_id: str, request_id: str) -> schemas.Order:
    return await update_status(db, order_id, OrderStatus.CANCELLED, request_id)


async def delete_order(db: AsyncSession, order_id: str, request_id: str) -> bool:
    order = await _fetch_order(db, order_id)
    if order is None:
        return False
    await db.delete(order)
    await db.commit()
    logger.info("Order deleted", extra={"order_id": order_id, "request_id": request_id})
    return True
