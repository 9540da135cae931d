# Import all models here so SQLAlchemy registers them with Base.metadata
from order_api.models.menu_item import MenuItem
from order_api.models.order import Order, OrderLine
from order_api.models.profile import CustomerProfile

__all__ = [
    "CustomerProfile",
    "MenuItem",
    "Order",
    "OrderLine",
]
