"""
Cart store: the customer's pending selections before checkout.

Lines snapshot the menu item's name and price when first added; later menu
edits never reach an existing line. The cart is written to session storage on
every change and rehydrated when the store is created.
"""

import logging
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from shared.schemas import MenuItem, OrderLine
from storefront.services.session_storage import SessionStorage

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "food-delivery-cart"


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    item_id: str = Field(alias="itemId")
    item_name: str = Field(alias="itemName")
    price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    def to_order_line(self) -> OrderLine:
        return OrderLine(item_name=self.item_name, quantity=self.quantity, price=self.price)


_CART_ADAPTER = TypeAdapter(list[CartLine])


class CartStore:
    def __init__(self, storage: SessionStorage) -> None:
        self._storage = storage
        self._lines: list[CartLine] = self._load()

    def _load(self) -> list[CartLine]:
        raw = self._storage.get_item(CART_STORAGE_KEY)
        if not raw:
            return []
        try:
            lines = _CART_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Stored cart is corrupt, starting with an empty cart",
                extra={"error_count": exc.error_count()},
            )
            return []
        # Merge duplicate ids a hand-edited store might contain
        merged: dict[str, CartLine] = {}
        for line in lines:
            existing = merged.get(line.item_id)
            merged[line.item_id] = (
                line if existing is None else existing.model_copy(update={"quantity": existing.quantity + line.quantity})
            )
        return list(merged.values())

    def _save(self) -> None:
        self._storage.set_item(
            CART_STORAGE_KEY,
            _CART_ADAPTER.dump_json(self._lines, by_alias=True).decode(),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self._lines), Decimal("0"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get(self, item_id: str) -> CartLine | None:
        return next((line for line in self._lines if line.item_id == item_id), None)

    def __len__(self) -> int:
        return len(self._lines)

    def to_order_lines(self) -> list[OrderLine]:
        return [line.to_order_line() for line in self._lines]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_item(self, menu_item: MenuItem) -> CartLine:
        existing = self.get(menu_item.item_id)
        if existing is not None:
            line = existing.model_copy(update={"quantity": existing.quantity + 1})
            self._lines = [line if other.item_id == line.item_id else other for other in self._lines]
        else:
            line = CartLine(
                item_id=menu_item.item_id,
                item_name=menu_item.name,
                price=menu_item.price,
                quantity=1,
            )
            self._lines = [*self._lines, line]
        self._save()
        return line

    def update_quantity(self, item_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(item_id)
            return
        self._lines = [
            line.model_copy(update={"quantity": quantity}) if line.item_id == item_id else line
            for line in self._lines
        ]
        self._save()

    def remove_item(self, item_id: str) -> None:
        remaining = [line for line in self._lines if line.item_id != item_id]
        if len(remaining) == len(self._lines):
            return
        self._lines = remaining
        self._save()

    def clear(self) -> None:
        self._lines = []
        self._save()
