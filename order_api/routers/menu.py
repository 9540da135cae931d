
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from order_api.auth import Caller, get_caller, require_staff
from order_api.database import get_db
from order_api.services import menu_service
from shared import schemas

router = APIRouter()


def _not_found(item_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Menu item {item_id} not found")


@router.get("", response_model=list[schemas.MenuItem])
async def get_menu(
    include_unavailable: bool = False,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
) -> list[schemas.MenuItem]:
    if include_unavailable and not caller.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff role required")
    return await menu_service.list_menu(db, include_unavailable=include_unavailable)


@router.post("", response_model=schemas.MenuItem, status_code=status.HTTP_201_CREATED)
async def add_menu_item(
    body: schemas.MenuItemInput,
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> schemas.MenuItem:
    return await menu_service.add_menu_item(db, body)


@router.patch("/{item_id}", response_model=schemas.MenuItem)
async def update_menu_item(
    item_id: str,
    body: schemas.MenuItemUpdate,
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> schemas.MenuItem:
    # The path is authoritative for which item is edited
    update = body.model_copy(update={"item_id": item_id})
    try:
        return await menu_service.update_menu_item(db, update)
    except menu_service.MenuItemNotFound:
        raise _not_found(item_id)


@router.post("/{item_id}/toggle", response_model=schemas.MenuItem)
async def toggle_availability(
    item_id: str,
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> schemas.MenuItem:
    try:
        return await menu_service.toggle_availability(db, item_id)
    except menu_service.MenuItemNotFound:
        raise _not_found(item_id)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_menu_item(
    item_id: str,
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> Response:
    try:
        await menu_service.delete_menu_item(db, item_id)
    except menu_service.MenuItemNotFound:
        raise _not_found(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
