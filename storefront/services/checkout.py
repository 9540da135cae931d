"""
Checkout: turns the cart plus a signed-in identity into a placed order.

Everything that can be checked locally (empty cart, identity, contact fields)
is checked before the first network call. Placement is a single attempt: on
failure the cart is left as it was and the error stays on the place_order
mutation for the form to show.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel, ValidationError, field_validator

from shared.schemas import CustomerProfile, OrderLine
from storefront.services.cart import CartStore
from storefront.services.identity import IdentityProvider
from storefront.services.queries import StorefrontQueries, profile_key

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{7,}$")


class CheckoutError(Exception):
    """Checkout refused before anything was sent to the backend."""


class EmptyCartError(CheckoutError):
    def __init__(self) -> None:
        super().__init__("Cannot place an order with an empty cart")


class LoginRequiredError(CheckoutError):
    def __init__(self) -> None:
        super().__init__("Sign in to place an order")


class ContactValidationError(CheckoutError):
    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))


class ContactDetails(BaseModel):
    name: str
    phone: str
    notes: str = ""

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("phone")
    @classmethod
    def _phone_format(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Phone number is required")
        if not PHONE_PATTERN.match(value):
            raise ValueError("Enter a valid phone number")
        return value

    def to_profile(self) -> CustomerProfile:
        return CustomerProfile(name=self.name, phone=self.phone)


def validate_contact(name: str, phone: str, notes: str = "") -> ContactDetails:
    try:
        return ContactDetails(name=name, phone=phone, notes=notes)
    except ValidationError as exc:
        errors: dict[str, str] = {}
        for error in exc.errors():
            field = str(error["loc"][0]) if error["loc"] else "form"
            # pydantic prefixes messages raised from validators with "Value error, "
            errors[field] = error["msg"].removeprefix("Value error, ")
        raise ContactValidationError(errors) from exc


def generate_order_id() -> str:
    return f"order_{time.time_ns() // 1_000_000}_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class PlacedOrder:
    order_id: str
    lines: tuple[OrderLine, ...]
    total: Decimal


class CheckoutService:
    def __init__(
        self,
        cart: CartStore,
        queries: StorefrontQueries,
        identity_provider: IdentityProvider,
    ) -> None:
        self._cart = cart
        self._queries = queries
        self._identity_provider = identity_provider

    @property
    def is_authenticated(self) -> bool:
        return self._identity_provider.identity is not None

    async def prefill(self) -> ContactDetails | None:
        """Contact fields from the caller's saved profile, when there is one."""
        if not self.is_authenticated:
            return None
        profile = await self._queries.caller_profile().fetch()
        if profile is None:
            return None
        return ContactDetails.model_construct(name=profile.name, phone=profile.phone, notes="")

    async def place_order(self, name: str, phone: str, notes: str = "") -> PlacedOrder:
        if self._cart.is_empty:
            raise EmptyCartError()

        if not self.is_authenticated:
            logger.info("Checkout attempted without identity, starting login flow")
            await self._identity_provider.login()
            raise LoginRequiredError()

        contact = validate_contact(name, phone, notes)
        await self._sync_profile(contact)

        order_id = generate_order_id()
        lines = tuple(self._cart.to_order_lines())
        total = self._cart.total

        await self._queries.place_order.mutate_async(order_id, list(lines))

        self._cart.clear()
        logger.info(
            "Order placed",
            extra={
                "order_id": order_id,
                "line_count": len(lines),
                "amount": float(total),
                "has_notes": bool(contact.notes),
            },
        )
        return PlacedOrder(order_id=order_id, lines=lines, total=total)

    async def _sync_profile(self, contact: ContactDetails) -> None:
        # Contact details live in the profile store, never on the order itself
        identity = self._identity_provider.identity
        entry = self._queries.cache.get(profile_key(identity.principal if identity else None))
        current = entry.data if entry is not None else None
        profile = contact.to_profile()
        if current == profile:
            return
        await self._queries.save_profile.mutate_async(profile)
