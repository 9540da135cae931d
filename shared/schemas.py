"""
Pydantic wire schemas shared by the order API and the storefront client.
Python attributes are snake_case; the JSON contract uses the camelCase aliases.
"""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from shared.order_status import OrderStatus


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MenuItem(WireModel):
    item_id: str = Field(alias="itemId")
    name: str
    description: str = ""
    category: str = ""
    price: Decimal = Field(ge=0)
    available: bool = True


class MenuItemInput(WireModel):
    name: str = Field(min_length=1)
    description: str = ""
    category: str = ""
    price: Decimal = Field(ge=0)


class MenuItemUpdate(WireModel):
    item_id: str = Field(alias="itemId")
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    category: str | None = None
    price: Decimal | None = Field(default=None, ge=0)


class OrderLine(WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    item_name: str = Field(alias="itemName", min_length=1)
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0)

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class OrderInput(WireModel):
    order_id: str = Field(alias="orderId", min_length=1)
    items: list[OrderLine] = Field(min_length=1)

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.items), Decimal("0"))


class Order(WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    order_id: str = Field(alias="orderId")
    customer_id: str = Field(alias="customerId")
    items: tuple[OrderLine, ...]
    total_price: Decimal = Field(alias="totalPrice")
    status: OrderStatus
    timestamp: int  # nanoseconds since the epoch, assigned by the server

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1_000_000_000, tz=timezone.utc)


class StatusUpdate(WireModel):
    status: OrderStatus


class CustomerProfile(WireModel):
    name: str
    phone: str


class DeleteResult(WireModel):
    deleted: bool
