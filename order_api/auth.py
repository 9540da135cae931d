"""
Caller identity for the order API.

The bearer credential is an opaque principal issued by the identity provider;
staff principals are configured in ``settings.staff_principals``.
"""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

from order_api.config import settings


@dataclass(frozen=True)
class Caller:
    principal: str | None
    is_staff: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None


def get_caller(authorization: str | None = Header(default=None)) -> Caller:
    if not authorization:
        return Caller(principal=None)
    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Malformed credentials")
    principal = credential.strip()
    return Caller(principal=principal, is_staff=principal in settings.staff_principals)


def require_authenticated(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return caller


def require_staff(caller: Caller = Depends(require_authenticated)) -> Caller:
    if not caller.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff role required")
    return caller
