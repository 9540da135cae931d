import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from order_api.database import AsyncSessionLocal
from order_api.models.menu_item import MenuItem
from shared import schemas

logger = logging.getLogger(__name__)

_MENU_SEED = [
    {"name": "Masala Dosa", "description": "Crisp rice crepe with spiced potato", "category": "Tiffin", "price": Decimal("90.00")},
    {"name": "Idli Sambar", "description": "Steamed rice cakes with lentil stew", "category": "Tiffin", "price": Decimal("60.00")},
    {"name": "Hyderabadi Biryani", "description": "Dum-cooked rice with chicken", "category": "Mains", "price": Decimal("240.00")},
    {"name": "Paneer Butter Masala", "description": "Cottage cheese in tomato gravy", "category": "Mains", "price": Decimal("190.00")},
    {"name": "Butter Naan", "description": "Tandoor bread with butter", "category": "Breads", "price": Decimal("40.00")},
    {"name": "Double Ka Meetha", "description": "Bread pudding with saffron", "category": "Desserts", "price": Decimal("80.00")},
    {"name": "Filter Coffee", "description": "Chicory blend with hot milk", "category": "Drinks", "price": Decimal("35.00")},
]


class MenuItemNotFound(LookupError):
    """No menu item with the given id."""


async def seed_menu_items() -> None:
    """Populate menu_items if the table is empty. Called once on startup."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(MenuItem).limit(1))
        if result.scalars().first() is not None:
            return
        for item_data in _MENU_SEED:
            db.add(MenuItem(**item_data))
        await db.commit()
        logger.info("Seeded %d menu items", len(_MENU_SEED))


def _build_response(item: MenuItem) -> schemas.MenuItem:
    return schemas.MenuItem(
        item_id=item.item_id,
        name=item.name,
        description=item.description,
        category=item.category,
        price=item.price,
        available=item.available,
    )


async def _get_item(db: AsyncSession, item_id: str) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise MenuItemNotFound(item_id)
    return item


async def list_menu(db: AsyncSession, include_unavailable: bool = False) -> list[schemas.MenuItem]:
    query = select(MenuItem).order_by(MenuItem.category, MenuItem.name)
    if not include_unavailable:
        query = query.where(MenuItem.available.is_(True))
    result = await db.execute(query)
    return [_build_response(item) for item in result.scalars().all()]


async def add_menu_item(db: AsyncSession, data: schemas.MenuItemInput) -> schemas.MenuItem:
    item = MenuItem(
        name=data.name,
        description=data.description,
        category=data.category,
        price=data.price,
        available=True,
    )
    db.add(item)
    await db.commit()
    logger.info("Menu item added", extra={"item_id": item.item_id, "item_name": item.name})
    return _build_response(item)


async def update_menu_item(db: AsyncSession, update: schemas.MenuItemUpdate) -> schemas.MenuItem:
    item = await _get_item(db, update.item_id)
    changes = update.model_dump(exclude={"item_id"}, exclude_none=True)
    for field, value in changes.items():
        setattr(item, field, value)
    await db.commit()
    logger.info("Menu item updated", extra={"item_id": item.item_id, "fields": sorted(changes)})
    return _build_response(item)


async def toggle_availability(db: AsyncSession, item_id: str) -> schemas.MenuItem:
    item = await _get_item(db, item_id)
    item.available = not item.available
    await db.commit()
    logger.info(
        "Menu item availability toggled",
        extra={"item_id": item_id, "available": item.available},
    )
    return _build_response(item)


async def delete_menu_item(db: AsyncSession, item_id: str) -> None:
    item = await _get_item(db, item_id)
    await db.delete(item)
    await db.commit()
    logger.info("Menu item deleted", extra={"item_id": item_id})
