import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Hashable, Iterable
from enum import Enum
from typing import Any

from storefront.metrics import MUTATIONS
from storefront.services.gateway import GatewayError
from storefront.services.query_cache import QueryCache, QueryKey

logger = logging.getLogger(__name__)


class MutationStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class Mutation:
    """
    One remote write plus the cache keys it invalidates once it succeeds.

    Runs are independent: concurrent calls are neither queued nor coalesced,
    and a failed run is never retried. ``status``/``error``/``variables``
    describe the most recent run, which is what a failure banner shows.
    """

    def __init__(
        self,
        name: str,
        fn: Callable[..., Awaitable[Any]],
        cache: QueryCache,
        invalidates: Callable[..., Iterable[QueryKey]] = lambda *args: (),
    ) -> None:
        self.name = name
        self._fn = fn
        self._cache = cache
        self._invalidates = invalidates
        self._pending: Counter[tuple[Hashable, ...]] = Counter()
        self.reset()

    def reset(self) -> None:
        self.status = MutationStatus.IDLE
        self.error: GatewayError | None = None
        self.data: Any = None
        self.variables: tuple[Any, ...] | None = None

    @property
    def is_pending(self) -> bool:
        return sum(self._pending.values()) > 0

    @property
    def is_error(self) -> bool:
        return self.status is MutationStatus.ERROR

    def is_pending_for(self, *args: Hashable) -> bool:
        return self._pending[args] > 0

    async def mutate_async(self, *args: Any) -> Any:
        """Run the write; on failure the error is recorded here and re-raised."""
        self.status = MutationStatus.PENDING
        self.error = None
        self.variables = args
        pending_key = tuple(arg for arg in args if isinstance(arg, Hashable))
        self._pending[pending_key] += 1
        try:
            result = await self._fn(*args)
        except GatewayError as exc:
            self.status = MutationStatus.ERROR
            self.error = exc
            MUTATIONS.labels(self.name, "error").inc()
            logger.warning(
                "Mutation failed",
                extra={"mutation": self.name, "error": str(exc), "retriable": exc.retriable},
            )
            raise
        finally:
            self._pending[pending_key] -= 1
            if self._pending[pending_key] <= 0:
                del self._pending[pending_key]

        self.status = MutationStatus.SUCCESS
        self.data = result
        MUTATIONS.labels(self.name, "success").inc()
        for prefix in self._invalidates(*args):
            self._cache.invalidate(prefix)
        return result

    async def mutate(self, *args: Any) -> Any:
        """Fire-and-record variant: failures only land in ``status``/``error``."""
        try:
            return await self.mutate_async(*args)
        except GatewayError:
            return None
