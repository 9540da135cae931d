"""
Typed client for the order API, the storefront's only source of truth.

Every transport, HTTP and parsing failure is converted here into a
GatewayError subclass, so callers above this layer never see httpx or
pydantic exceptions:

  - AuthorizationError: 401/403, never retried
  - NotFoundError: 404; lookups turn it into None / False instead
  - RejectedError: 409/422, the backend refused the request as sent
  - TransientGatewayError: network failure, timeout or 5xx
"""

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx
from opentelemetry import trace
from opentelemetry.propagate import inject
from pydantic import TypeAdapter, ValidationError

from shared.order_status import OrderStatus
from shared.schemas import (
    CustomerProfile,
    DeleteResult,
    MenuItem,
    MenuItemInput,
    MenuItemUpdate,
    Order,
    OrderInput,
    OrderLine,
    StatusUpdate,
)
from storefront.config import settings
from storefront.metrics import GATEWAY_CALLS, GATEWAY_LATENCY
from storefront.services.identity import IdentityProvider

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GatewayError(Exception):
    """Base class for backend gateway failures."""

    retriable = False

    def __init__(self, operation: str, message: str, status_code: int | None = None) -> None:
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation}: {message}")


class AuthorizationError(GatewayError):
    """Caller is not signed in or lacks the staff role."""


class NotFoundError(GatewayError):
    """The order or menu item no longer exists."""


class RejectedError(GatewayError):
    """Backend refused the request: illegal transition, duplicate id, bad input."""


class TransientGatewayError(GatewayError):
    """Network failure, timeout or server error. Reads recover on the next poll."""

    retriable = True


class MalformedResponseError(TransientGatewayError):
    """Response body did not match the contract."""


_STATUS_ERRORS: dict[int, tuple[type[GatewayError], str]] = {
    401: (AuthorizationError, "unauthorized"),
    403: (AuthorizationError, "unauthorized"),
    404: (NotFoundError, "not_found"),
    409: (RejectedError, "rejected"),
    422: (RejectedError, "rejected"),
}

_MENU_ADAPTER = TypeAdapter(list[MenuItem])
_ORDERS_ADAPTER = TypeAdapter(list[Order])
_PROFILE_ADAPTER = TypeAdapter(CustomerProfile | None)
_MENU_ITEM_ADAPTER = TypeAdapter(MenuItem)
_ORDER_ADAPTER = TypeAdapter(Order)
_DELETE_ADAPTER = TypeAdapter(DeleteResult)


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class BackendGateway:
    def __init__(
        self,
        identity_provider: IdentityProvider,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._identity_provider = identity_provider
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.backend_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            transport=transport,
        )

    @property
    def identity_provider(self) -> IdentityProvider:
        return self._identity_provider

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers: dict[str, str] = {}
        identity = self._identity_provider.identity
        if identity is not None:
            headers["Authorization"] = identity.authorization

        start = time.perf_counter()
        with tracer.start_as_current_span(f"gateway.{operation}"):
            inject(headers)
            try:
                response = await self._client.request(
                    method, path, json=json, params=params, headers=headers
                )
            except httpx.HTTPError as exc:
                GATEWAY_CALLS.labels(operation, "transient").inc()
                logger.warning(
                    "Gateway call failed in transport",
                    extra={"operation": operation, "error": str(exc)},
                )
                raise TransientGatewayError(operation, str(exc) or type(exc).__name__) from exc
            finally:
                GATEWAY_LATENCY.labels(operation).observe(time.perf_counter() - start)

        if response.is_success:
            GATEWAY_CALLS.labels(operation, "ok").inc()
            return response

        error_cls, outcome = _STATUS_ERRORS.get(response.status_code, (TransientGatewayError, "transient"))
        GATEWAY_CALLS.labels(operation, outcome).inc()
        detail = _detail(response)
        logger.info(
            "Gateway call returned an error status",
            extra={"operation": operation, "status_code": response.status_code, "detail": detail},
        )
        raise error_cls(operation, detail, status_code=response.status_code)

    @staticmethod
    def _parse(operation: str, adapter: TypeAdapter, response: httpx.Response) -> Any:
        try:
            return adapter.validate_json(response.content)
        except ValidationError as exc:
            GATEWAY_CALLS.labels(operation, "malformed").inc()
            raise MalformedResponseError(operation, f"unexpected response body ({exc.error_count()} errors)") from exc

    # -- menu ----------------------------------------------------------------

    async def get_menu(self, include_unavailable: bool = False) -> list[MenuItem]:
        params = {"include_unavailable": "true"} if include_unavailable else None
        response = await self._request("get_menu", "GET", "/menu", params=params)
        items = self._parse("get_menu", _MENU_ADAPTER, response)
        if include_unavailable:
            return items
        # Customers only ever see available items, whatever the server sent
        return [item for item in items if item.available]

    async def add_menu_item(self, data: MenuItemInput) -> MenuItem:
        response = await self._request(
            "add_menu_item", "POST", "/menu", json=data.model_dump(mode="json", by_alias=True)
        )
        return self._parse("add_menu_item", _MENU_ITEM_ADAPTER, response)

    async def update_menu_item(self, update: MenuItemUpdate) -> MenuItem:
        response = await self._request(
            "update_menu_item",
            "PATCH",
            f"/menu/{quote(update.item_id, safe='')}",
            json=update.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return self._parse("update_menu_item", _MENU_ITEM_ADAPTER, response)

    async def toggle_availability(self, item_id: str) -> MenuItem:
        response = await self._request(
            "toggle_availability", "POST", f"/menu/{quote(item_id, safe='')}/toggle"
        )
        return self._parse("toggle_availability", _MENU_ITEM_ADAPTER, response)

    async def delete_menu_item(self, item_id: str) -> None:
        await self._request("delete_menu_item", "DELETE", f"/menu/{quote(item_id, safe='')}")

    # -- orders --------------------------------------------------------------

    async def place_order(self, order_id: str, items: list[OrderLine]) -> None:
        payload = OrderInput(order_id=order_id, items=items)
        await self._request(
            "place_order", "POST", "/orders", json=payload.model_dump(mode="json", by_alias=True)
        )

    async def get_order_by_id(self, order_id: str) -> Order | None:
        try:
            response = await self._request(
                "get_order_by_id", "GET", f"/orders/{quote(order_id, safe='')}"
            )
        except NotFoundError:
            return None
        return self._parse("get_order_by_id", _ORDER_ADAPTER, response)

    async def get_orders_by_customer(self) -> list[Order]:
        response = await self._request("get_orders_by_customer", "GET", "/orders/mine")
        return self._parse("get_orders_by_customer", _ORDERS_ADAPTER, response)

    async def get_all_orders(self) -> list[Order]:
        response = await self._request("get_all_orders", "GET", "/orders")
        return self._parse("get_all_orders", _ORDERS_ADAPTER, response)

    async def update_order_status(self, order_id: str, status: OrderStatus) -> None:
        await self._request(
            "update_order_status",
            "PUT",
            f"/orders/{quote(order_id, safe='')}/status",
            json=StatusUpdate(status=status).model_dump(mode="json"),
        )

    async def cancel_order(self, order_id: str) -> None:
        await self._request("cancel_order", "POST", f"/orders/{quote(order_id, safe='')}/cancel")

    async def delete_order(self, order_id: str) -> bool:
        response = await self._request("delete_order", "DELETE", f"/orders/{quote(order_id, safe='')}")
        return self._parse("delete_order", _DELETE_ADAPTER, response).deleted

    # -- profile -------------------------------------------------------------

    async def get_caller_user_profile(self) -> CustomerProfile | None:
        response = await self._request("get_caller_user_profile", "GET", "/profile")
        return self._parse("get_caller_user_profile", _PROFILE_ADAPTER, response)

    async def save_caller_user_profile(self, profile: CustomerProfile) -> None:
        await self._request(
            "save_caller_user_profile", "PUT", "/profile", json=profile.model_dump(mode="json")
        )
