"""
Storefront session: owns every client-side store and background task for one
browsing session. Create it at session start, close it at teardown.
"""

import logging

import httpx

from shared.logging import setup_logging
from shared.tracing import setup_tracing
from storefront.config import Settings, settings as default_settings
from storefront.services.cart import CartStore
from storefront.services.checkout import CheckoutService
from storefront.services.courier import CourierDesk
from storefront.services.courier_access import CourierAccess
from storefront.services.gateway import BackendGateway
from storefront.services.identity import IdentityProvider
from storefront.services.queries import StorefrontQueries
from storefront.services.query_cache import QueryCache
from storefront.services.session_storage import (
    FileSessionStorage,
    MemorySessionStorage,
    SessionStorage,
)

logger = logging.getLogger(__name__)


def configure_observability(config: Settings = default_settings) -> None:
    setup_logging(config.log_level, service="storefront")
    if setup_tracing("storefront", config.otlp_endpoint):
        logger.info("Tracing enabled", extra={"otlp_endpoint": config.otlp_endpoint})


def default_storage(config: Settings = default_settings) -> SessionStorage:
    if config.session_storage_path:
        return FileSessionStorage(config.session_storage_path)
    return MemorySessionStorage()


class StorefrontSession:
    def __init__(
        self,
        identity_provider: IdentityProvider,
        config: Settings = default_settings,
        storage: SessionStorage | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self.config = config
        self.identity_provider = identity_provider
        self.storage = storage if storage is not None else default_storage(config)

        self.cart = CartStore(self.storage)
        self.courier_access = CourierAccess(self.storage, config.courier_pin)

        self.gateway = BackendGateway(
            identity_provider,
            base_url=config.backend_url,
            timeout=config.request_timeout,
            transport=transport,
        )
        self.cache = cache if cache is not None else QueryCache()
        self.queries = StorefrontQueries(self.gateway, self.cache, config)

        self.checkout = CheckoutService(self.cart, self.queries, identity_provider)
        self.courier = CourierDesk(self.courier_access, self.queries)
        self._closed = False

        logger.info(
            "Storefront session started",
            extra={"backend_url": config.backend_url, "cart_lines": len(self.cart)},
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.cache.close()
        await self.gateway.aclose()
        logger.info("Storefront session closed")

    async def __aenter__(self) -> "StorefrontSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
