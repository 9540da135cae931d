"""
Identity collaborator.

The identity provider is external; the storefront only needs to know whether a
caller is signed in, the opaque principal to present to the backend, and how to
start the login flow.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    principal: str

    @property
    def authorization(self) -> str:
        return f"Bearer {self.principal}"


class IdentityProvider(Protocol):
    @property
    def identity(self) -> Identity | None: ...

    async def login(self) -> None: ...

    async def logout(self) -> None: ...


class StaticIdentityProvider:
    """Provider with a fixed principal, for development and tests."""

    def __init__(self, principal: str | None = None, login_principal: str | None = None) -> None:
        self._identity = Identity(principal) if principal else None
        self._login_principal = login_principal
        self.login_requests = 0

    @property
    def identity(self) -> Identity | None:
        return self._identity

    async def login(self) -> None:
        self.login_requests += 1
        logger.info("Login flow requested", extra={"login_requests": self.login_requests})
        if self._login_principal:
            self._identity = Identity(self._login_principal)

    async def logout(self) -> None:
        self._identity = None
