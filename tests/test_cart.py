import json
from decimal import Decimal

from shared.schemas import MenuItem
from storefront.services.cart import CART_STORAGE_KEY, CartStore
from storefront.services.session_storage import FileSessionStorage, MemorySessionStorage

DOSA = MenuItem(item_id="a", name="Masala Dosa", price=Decimal("10.00"))
COFFEE = MenuItem(item_id="b", name="Filter Coffee", price=Decimal("5.50"))


def test_totals_follow_lines():
    cart = CartStore(MemorySessionStorage())
    cart.add_item(DOSA)
    cart.add_item(DOSA)
    cart.add_item(COFFEE)

    assert cart.total == Decimal("25.50")
    assert cart.item_count == 3
    assert len(cart) == 2
    assert cart.get("a").quantity == 2


def test_line_keeps_price_snapshot():
    cart = CartStore(MemorySessionStorage())
    cart.add_item(DOSA)
    cart.add_item(DOSA.model_copy(update={"price": Decimal("99.00"), "name": "Renamed"}))

    line = cart.get("a")
    assert line.price == Decimal("10.00")
    assert line.item_name == "Masala Dosa"
    assert line.quantity == 2


def test_update_quantity_to_zero_removes_line():
    cart = CartStore(MemorySessionStorage())
    cart.add_item(DOSA)
    cart.add_item(COFFEE)

    cart.update_quantity("a", 4)
    assert cart.get("a").quantity == 4

    cart.update_quantity("a", 0)
    assert cart.get("a") is None
    cart.update_quantity("b", -3)
    assert cart.is_empty
    assert all(line.quantity > 0 for line in cart.lines)


def test_remove_absent_item_is_noop():
    storage = MemorySessionStorage()
    cart = CartStore(storage)
    cart.add_item(DOSA)
    before = storage.get_item(CART_STORAGE_KEY)

    cart.remove_item("missing")

    assert storage.get_item(CART_STORAGE_KEY) == before
    assert cart.item_count == 1


def test_clear_empties_everything():
    cart = CartStore(MemorySessionStorage())
    cart.add_item(DOSA)
    cart.clear()

    assert cart.is_empty
    assert cart.total == Decimal("0")
    assert cart.item_count == 0
    assert cart.to_order_lines() == []


def test_cart_survives_reload(tmp_path):
    path = tmp_path / "session.json"
    cart = CartStore(FileSessionStorage(path))
    cart.add_item(DOSA)
    cart.add_item(COFFEE)
    cart.update_quantity("b", 3)

    reloaded = CartStore(FileSessionStorage(path))

    assert [(line.item_id, line.quantity) for line in reloaded.lines] == [("a", 1), ("b", 3)]
    assert reloaded.total == Decimal("26.50")


def test_corrupt_storage_yields_empty_cart():
    storage = MemorySessionStorage()
    storage.set_item(CART_STORAGE_KEY, "{not json")

    assert CartStore(storage).is_empty

    storage.set_item(CART_STORAGE_KEY, json.dumps([{"itemId": "a", "quantity": -1}]))
    assert CartStore(storage).is_empty


def test_duplicate_stored_lines_are_merged():
    storage = MemorySessionStorage()
    line = {"itemId": "a", "itemName": "Masala Dosa", "price": "10.00", "quantity": 1}
    storage.set_item(CART_STORAGE_KEY, json.dumps([line, {**line, "quantity": 2}]))

    cart = CartStore(storage)

    assert len(cart) == 1
    assert cart.get("a").quantity == 3


def test_order_lines_snapshot_name_quantity_price():
    cart = CartStore(MemorySessionStorage())
    cart.add_item(COFFEE)
    cart.add_item(COFFEE)

    [line] = cart.to_order_lines()
    assert line.item_name == "Filter Coffee"
    assert line.quantity == 2
    assert line.subtotal == Decimal("11.00")


def test_unreadable_session_file_starts_empty(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("garbage", encoding="utf-8")

    storage = FileSessionStorage(path)

    assert storage.get_item(CART_STORAGE_KEY) is None
    storage.set_item("k", "v")
    assert FileSessionStorage(path).get_item("k") == "v"
