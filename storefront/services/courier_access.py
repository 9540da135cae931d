import hmac
import logging

from storefront.services.session_storage import SessionStorage

logger = logging.getLogger(__name__)

COURIER_ACCESS_KEY = "courierAccess"


class CourierAccess:
    """PIN gate in front of the courier dashboard, remembered for the session."""

    def __init__(self, storage: SessionStorage, pin: str) -> None:
        self._storage = storage
        self._pin = pin
        self._has_access = storage.get_item(COURIER_ACCESS_KEY) == "true"

    @property
    def has_access(self) -> bool:
        return self._has_access

    def grant(self, pin: str) -> bool:
        if not hmac.compare_digest(pin.encode(), self._pin.encode()):
            logger.warning("Courier PIN rejected")
            return False
        self._storage.set_item(COURIER_ACCESS_KEY, "true")
        self._has_access = True
        logger.info("Courier access granted")
        return True

    def revoke(self) -> None:
        self._storage.remove_item(COURIER_ACCESS_KEY)
        self._has_access = False
