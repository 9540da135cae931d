"""
Per-resource query cache with time-boxed freshness and reference-counted pollers.

Each logical resource lives under a tuple key, e.g. ``("orderById", "order_1")``.
Views observe an entry through a Subscription; while at least one subscription
is open and the entry's policy has a ``refetch_interval``, a poll task refetches
it on a fixed wall-clock cadence. Closing the last subscription cancels the poll
task. Requests already in flight are left to finish; their result still lands
in the entry, it just has nobody to notify.

Mutations call ``invalidate(prefix)``: matching entries are marked stale,
observed ones refetch immediately and unobserved ones refetch on their next read.

Fetch results are ordered by issue sequence. A response from a fetch issued
before one that has already been applied is discarded, so a slow poll that
started before a mutation cannot overwrite the post-invalidation value.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine, Hashable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from storefront.metrics import ACTIVE_POLLERS, QUERY_FETCHES
from storefront.services.gateway import GatewayError

logger = logging.getLogger(__name__)

QueryKey = tuple[Hashable, ...]
Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[["QueryEntry"], None]


class QueryStatus(str, Enum):
    IDLE = "idle"  # never fetched
    LOADING = "loading"  # first fetch in flight, no data yet
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class RefreshPolicy:
    stale_time: float = 0.0
    refetch_interval: float | None = None
    refetch_on_mount: bool = False


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryEntry:
    def __init__(self, cache: "QueryCache", key: QueryKey, fetcher: Fetcher, policy: RefreshPolicy) -> None:
        self._cache = cache
        self.key = key
        self.fetcher = fetcher
        self.policy = policy

        self.status = QueryStatus.IDLE
        self.data: Any = None
        self.error: GatewayError | None = None
        self.updated_at: float | None = None
        self.invalidated = False

        self._issued = 0
        self._applied = 0
        self._invalidated_through = 0
        self._in_flight = 0

        self._subscriptions: list["Subscription"] = []
        self._poller: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<QueryEntry {self.key!r} status={self.status.value} observers={self.observer_count}>"

    @property
    def resource(self) -> str:
        return str(self.key[0])

    @property
    def observer_count(self) -> int:
        return len(self._subscriptions)

    @property
    def is_fetching(self) -> bool:
        return self._in_flight > 0

    @property
    def is_polling(self) -> bool:
        return self._poller is not None

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR

    def is_stale(self) -> bool:
        if self.invalidated or self.updated_at is None:
            return True
        return self._cache.clock() - self.updated_at >= self.policy.stale_time

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def fetch(self) -> None:
        """Run the fetcher once and record the outcome. Gateway failures become the error state."""
        self._issued += 1
        seq = self._issued
        self._in_flight += 1
        if self.updated_at is None and self.status is not QueryStatus.ERROR:
            self.status = QueryStatus.LOADING
            self._notify()

        try:
            result = await self.fetcher()
        except GatewayError as exc:
            if self._superseded(seq):
                return
            self.error = exc
            self.status = QueryStatus.ERROR
            QUERY_FETCHES.labels(self.resource, "error").inc()
            logger.warning(
                "Query fetch failed",
                extra={"query_key": repr(self.key), "error": str(exc), "retriable": exc.retriable},
            )
        else:
            if self._superseded(seq):
                return
            self.data = result
            self.error = None
            self.status = QueryStatus.SUCCESS
            self.updated_at = self._cache.clock()
            # A fetch issued before the last invalidation may carry pre-mutation data
            if seq > self._invalidated_through:
                self.invalidated = False
            elif self._subscriptions and seq == self._issued:
                # Nothing newer is in flight to replace it, so observers would keep stale data
                self._cache.spawn(self.fetch())
            QUERY_FETCHES.labels(self.resource, "success").inc()
        finally:
            self._in_flight -= 1

        self._notify()

    def _superseded(self, seq: int) -> bool:
        if seq < self._applied:
            QUERY_FETCHES.labels(self.resource, "discarded").inc()
            logger.debug(
                "Discarding out-of-order response",
                extra={"query_key": repr(self.key), "seq": seq, "applied": self._applied},
            )
            return True
        self._applied = seq
        return False

    async def refetch(self) -> None:
        """Manual retry: re-issue the same fetch."""
        await self.fetch()

    def invalidate(self) -> None:
        self.invalidated = True
        self._invalidated_through = self._issued
        if self._subscriptions:
            self._cache.spawn(self.fetch())

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def _attach(self, subscription: "Subscription") -> None:
        self._subscriptions.append(subscription)
        should_fetch = self.policy.refetch_on_mount or self.is_stale()
        if should_fetch and not self.is_fetching:
            self._cache.spawn(self.fetch())
        if self.policy.refetch_interval and self._poller is None:
            self._poller = self._cache.spawn(self._poll(self.policy.refetch_interval))
            ACTIVE_POLLERS.inc()
            logger.debug("Poller started", extra={"query_key": repr(self.key)})

    def _detach(self, subscription: "Subscription") -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        if not self._subscriptions:
            self._stop_polling()

    def _stop_polling(self) -> None:
        if self._poller is None:
            return
        self._poller.cancel()
        self._poller = None
        ACTIVE_POLLERS.dec()
        logger.debug("Poller stopped", extra={"query_key": repr(self.key)})

    async def _poll(self, interval: float) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += interval
            # Skip the tick rather than pile requests onto a slow backend
            if not self.is_fetching:
                self._cache.spawn(self.fetch())

    def _notify(self) -> None:
        for subscription in list(self._subscriptions):
            if subscription.listener is not None:
                subscription.listener(self)


class Subscription:
    """An open observation of one cache entry. Close it when the view goes away."""

    def __init__(self, entry: QueryEntry, listener: Listener | None = None) -> None:
        self.entry = entry
        self.listener = listener
        self.closed = False

    @property
    def data(self) -> Any:
        return self.entry.data

    @property
    def status(self) -> QueryStatus:
        return self.entry.status

    @property
    def error(self) -> GatewayError | None:
        return self.entry.error

    async def refetch(self) -> None:
        await self.entry.refetch()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.entry._detach(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class QueryCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._entries: dict[QueryKey, QueryEntry] = {}
        self._tasks: set[asyncio.Task] = set()

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def get(self, key: QueryKey) -> QueryEntry | None:
        return self._entries.get(key)

    def entry(self, key: QueryKey, fetcher: Fetcher, policy: RefreshPolicy) -> QueryEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = QueryEntry(self, key, fetcher, policy)
            self._entries[key] = entry
        else:
            # The latest definition wins: it may close over a newer identity
            entry.fetcher = fetcher
            entry.policy = policy
        return entry

    def observe(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        policy: RefreshPolicy,
        listener: Listener | None = None,
    ) -> Subscription:
        entry = self.entry(key, fetcher, policy)
        subscription = Subscription(entry, listener)
        entry._attach(subscription)
        return subscription

    async def ensure(self, key: QueryKey, fetcher: Fetcher, policy: RefreshPolicy) -> Any:
        """Return cached data while fresh, otherwise fetch it. Raises the entry's error on failure."""
        entry = self.entry(key, fetcher, policy)
        if entry.is_stale() or entry.is_error:
            await entry.fetch()
        if entry.is_error:
            raise entry.error
        return entry.data

    def invalidate(self, prefix: QueryKey) -> list[QueryKey]:
        matched = [key for key in self._entries if key_matches(key, prefix)]
        for key in matched:
            self._entries[key].invalidate()
        if matched:
            logger.info(
                "Invalidated cached queries",
                extra={"prefix": repr(prefix), "keys": [repr(key) for key in matched]},
            )
        return matched

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background query task crashed", exc_info=task.exception())

    async def close(self) -> None:
        for entry in self._entries.values():
            entry._subscriptions.clear()
            entry._stop_polling()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
