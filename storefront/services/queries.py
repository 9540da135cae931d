"""
Query definitions and mutation invalidation rules for every storefront resource.

Static-ish resources (menu, profile) revalidate lazily on mount once their
stale time has passed. Live resources (single order, order lists) refetch on
every mount and poll while observed: the order detail view at the shortest
interval since it backs the live status tracker, the order lists at a longer
one.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from shared.schemas import CustomerProfile, MenuItem, Order
from storefront.config import Settings, settings as default_settings
from storefront.services.gateway import BackendGateway
from storefront.services.mutations import Mutation
from storefront.services.query_cache import (
    Fetcher,
    Listener,
    QueryCache,
    QueryKey,
    RefreshPolicy,
    Subscription,
)

MENU: QueryKey = ("menu",)
ADMIN_MENU: QueryKey = ("adminMenu",)
ALL_ORDERS: QueryKey = ("allOrders",)
ORDER_BY_ID: QueryKey = ("orderById",)
ORDERS_BY_CUSTOMER: QueryKey = ("ordersByCustomer",)
CURRENT_USER_PROFILE: QueryKey = ("currentUserProfile",)

_MENU_KEYS = (MENU, ADMIN_MENU)
_ORDER_LIST_KEYS = (ALL_ORDERS, ORDERS_BY_CUSTOMER)


def order_key(order_id: str) -> QueryKey:
    return (*ORDER_BY_ID, order_id)


def profile_key(principal: str | None) -> QueryKey:
    return (*CURRENT_USER_PROFILE, principal)


@dataclass(frozen=True)
class QueryDefinition:
    """A resource bound to its cache key, fetcher and refresh policy."""

    cache: QueryCache
    key: QueryKey
    fetcher: Fetcher
    policy: RefreshPolicy

    def observe(self, listener: Listener | None = None) -> Subscription:
        return self.cache.observe(self.key, self.fetcher, self.policy, listener)

    async def fetch(self) -> Any:
        return await self.cache.ensure(self.key, self.fetcher, self.policy)


class StorefrontQueries:
    def __init__(
        self,
        gateway: BackendGateway,
        cache: QueryCache,
        config: Settings = default_settings,
    ) -> None:
        self.gateway = gateway
        self.cache = cache
        self.config = config

        self._static_menu = RefreshPolicy(stale_time=config.menu_stale_time)
        self._admin_menu = RefreshPolicy(stale_time=config.admin_menu_stale_time, refetch_on_mount=True)
        self._profile = RefreshPolicy(stale_time=config.profile_stale_time)
        self._order_detail = RefreshPolicy(
            refetch_interval=config.order_detail_poll_interval, refetch_on_mount=True
        )
        self._order_list = RefreshPolicy(
            refetch_interval=config.order_list_poll_interval, refetch_on_mount=True
        )

        # -- menu ------------------------------------------------------------
        self.add_menu_item = self._mutation(
            "add_menu_item", gateway.add_menu_item, lambda data: _MENU_KEYS
        )
        self.update_menu_item = self._mutation(
            "update_menu_item", gateway.update_menu_item, lambda update: _MENU_KEYS
        )
        self.toggle_availability = self._mutation(
            "toggle_availability", gateway.toggle_availability, lambda item_id: _MENU_KEYS
        )
        self.delete_menu_item = self._mutation(
            "delete_menu_item", gateway.delete_menu_item, lambda item_id: _MENU_KEYS
        )

        # -- orders ----------------------------------------------------------
        self.place_order = self._mutation(
            "place_order", gateway.place_order, lambda order_id, items: _ORDER_LIST_KEYS
        )
        self.update_order_status = self._mutation(
            "update_order_status", gateway.update_order_status, self._order_changed
        )
        self.cancel_order = self._mutation("cancel_order", gateway.cancel_order, self._order_changed)
        self.delete_order = self._mutation("delete_order", gateway.delete_order, self._order_changed)

        # -- profile ---------------------------------------------------------
        self.save_profile = self._mutation(
            "save_caller_user_profile",
            gateway.save_caller_user_profile,
            lambda profile: (CURRENT_USER_PROFILE,),
        )

    def _mutation(self, name: str, fn: Callable, invalidates: Callable) -> Mutation:
        return Mutation(name, fn, self.cache, invalidates)

    @staticmethod
    def _order_changed(order_id: str, *args: Any) -> tuple[QueryKey, ...]:
        return (*_ORDER_LIST_KEYS, order_key(order_id))

    def _principal(self) -> str | None:
        identity = self.gateway.identity_provider.identity
        return identity.principal if identity else None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def menu(self) -> QueryDefinition:
        return QueryDefinition(self.cache, MENU, self.gateway.get_menu, self._static_menu)

    def admin_menu(self) -> QueryDefinition:
        async def fetch_all() -> list[MenuItem]:
            return await self.gateway.get_menu(include_unavailable=True)

        return QueryDefinition(self.cache, ADMIN_MENU, fetch_all, self._admin_menu)

    def all_orders(self) -> QueryDefinition:
        return QueryDefinition(self.cache, ALL_ORDERS, self.gateway.get_all_orders, self._order_list)

    def orders_by_customer(self) -> QueryDefinition:
        principal = self._principal()

        async def fetch_mine() -> list[Order]:
            if principal is None:
                return []
            return await self.gateway.get_orders_by_customer()

        return QueryDefinition(self.cache, (*ORDERS_BY_CUSTOMER, principal), fetch_mine, self._order_list)

    def order_by_id(self, order_id: str) -> QueryDefinition:
        async def fetch_one() -> Order | None:
            return await self.gateway.get_order_by_id(order_id)

        return QueryDefinition(self.cache, order_key(order_id), fetch_one, self._order_detail)

    def caller_profile(self) -> QueryDefinition:
        principal = self._principal()

        async def fetch_profile() -> CustomerProfile | None:
            if principal is None:
                return None
            return await self.gateway.get_caller_user_profile()

        return QueryDefinition(self.cache, profile_key(principal), fetch_profile, self._profile)

