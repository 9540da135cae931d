import asyncio
import os
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{Path(_DB_DIR) / 'orders.db'}")
os.environ.setdefault("STAFF_PRINCIPALS", '["staff-1"]')
os.environ.setdefault("SEED_MENU", "false")
os.environ.setdefault("OTLP_ENDPOINT", "")
os.environ.setdefault("STOREFRONT_OTLP_ENDPOINT", "")

from httpx import ASGITransport  # noqa: E402

import order_api.models  # noqa: E402,F401
from order_api.database import Base, engine  # noqa: E402
from order_api.main import app  # noqa: E402
from shared.order_status import OrderStatus  # noqa: E402
from shared.schemas import Order, OrderLine  # noqa: E402
from storefront.config import Settings  # noqa: E402
from storefront.services.identity import StaticIdentityProvider  # noqa: E402
from storefront.session import StorefrontSession  # noqa: E402

CUSTOMER = "customer-1"
OTHER_CUSTOMER = "customer-2"
STAFF = "staff-1"

TEST_SETTINGS = Settings(
    backend_url="http://test",
    order_detail_poll_interval=0.05,
    order_list_poll_interval=0.05,
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def database(anyio_backend):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def open_session(database):
    """Factory for storefront sessions wired to the in-process order API."""
    sessions: list[StorefrontSession] = []

    def _open(
        principal: str | None = None,
        *,
        login_principal: str | None = None,
        storage=None,
        transport=None,
    ) -> StorefrontSession:
        session = StorefrontSession(
            StaticIdentityProvider(principal, login_principal),
            config=TEST_SETTINGS,
            storage=storage,
            transport=transport or ASGITransport(app=app),
        )
        sessions.append(session)
        return session

    yield _open

    for session in sessions:
        await session.close()


@pytest.fixture
def wait_for():
    async def _wait_for(predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)

    return _wait_for


def make_order(
    order_id: str = "order_1",
    status: OrderStatus = OrderStatus.PENDING,
    timestamp: int = 1_700_000_000_000_000_000,
    customer_id: str = CUSTOMER,
) -> Order:
    items = (
        OrderLine(item_name="Masala Dosa", quantity=2, price=Decimal("10.00")),
        OrderLine(item_name="Filter Coffee", quantity=1, price=Decimal("5.50")),
    )
    return Order(
        order_id=order_id,
        customer_id=customer_id,
        items=items,
        total_price=sum((line.subtotal for line in items), Decimal("0")),
        status=status,
        timestamp=timestamp,
    )
