import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from order_api.auth import Caller, require_authenticated, require_staff
from order_api.database import get_db
from order_api.services import order_service
from shared import schemas
from shared.order_status import IllegalTransitionError

router = APIRouter()
logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _not_found(order_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Order {order_id} not found")


@router.post("", response_model=schemas.Order, status_code=status.HTTP_201_CREATED)
async def place_order(
    body: schemas.OrderInput,
    request: Request,
    caller: Caller = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
) -> schemas.Order:
    request_id = _request_id(request)
    logger.info(
        "Received place_order request",
        extra={"request_id": request_id, "order_id": body.order_id, "line_count": len(body.items)},
    )
    try:
        return await order_service.create_order(db, caller.principal, body, request_id)
    except order_service.DuplicateOrderError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.get("", response_model=list[schemas.Order])
async def get_all_orders(
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> list[schemas.Order]:
    return await order_service.list_orders(db)


@router.get("/mine", response_model=list[schemas.Order])
async def get_orders_by_customer(
    caller: Caller = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
) -> list[schemas.Order]:
    return await order_service.list_orders(db, customer_id=caller.principal)


@router.get("/{order_id}", response_model=schemas.Order)
async def get_order(
    order_id: str,
    caller: Caller = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
) -> schemas.Order:
    try:
        return await order_service.get_order(db, order_id, caller.principal, caller.is_staff)
    except order_service.OrderNotFound:
        raise _not_found(order_id)
    except order_service.OrderAccessDenied:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your order")


@router.put("/{order_id}/status", response_model=schemas.Order)
async def update_order_status(
    order_id: str,
    body: schemas.StatusUpdate,
    request: Request,
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> schemas.Order:
    try:
        return await order_service.update_status(db, order_id, body.status, _request_id(request))
    except order_service.OrderNotFound:
        raise _not_found(order_id)
    except IllegalTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post("/{order_id}/cancel", response_model=schemas.Order)
async def cancel_order(
    order_id: str,
    request: Request,
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> schemas.Order:
    try:
        return await order_service.cancel_order(db, order_id, _request_id(request))
    except order_service.OrderNotFound:
        raise _not_found(order_id)
    except IllegalTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.delete("/{order_id}", response_model=schemas.DeleteResult)
async def delete_order(
    order_id: str,
    request: Request,
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> schemas.DeleteResult:
    deleted = await order_service.delete_order(db, order_id, _request_id(request))
    return schemas.DeleteResult(deleted=deleted)
