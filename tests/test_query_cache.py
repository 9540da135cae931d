import asyncio

import pytest

from storefront.services.gateway import TransientGatewayError
from storefront.services.query_cache import QueryCache, QueryStatus, RefreshPolicy, key_matches

KEY = ("orderById", "order_1")


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class FakeFetcher:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_key_prefix_matching():
    assert key_matches(("orderById", "x"), ("orderById",))
    assert key_matches(("menu",), ("menu",))
    assert not key_matches(("menu",), ("adminMenu",))
    assert not key_matches(("orderById",), ("orderById", "x"))


@pytest.mark.anyio
async def test_ensure_serves_fresh_data_from_cache():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    fetcher = FakeFetcher("menu-v1", "menu-v2")
    policy = RefreshPolicy(stale_time=30)

    assert await cache.ensure(("menu",), fetcher, policy) == "menu-v1"
    clock.now = 29
    assert await cache.ensure(("menu",), fetcher, policy) == "menu-v1"
    clock.now = 31
    assert await cache.ensure(("menu",), fetcher, policy) == "menu-v2"
    assert fetcher.calls == 2


@pytest.mark.anyio
async def test_observe_refetches_on_mount_when_policy_asks():
    cache = QueryCache()
    fetcher = FakeFetcher("a")
    policy = RefreshPolicy(stale_time=60, refetch_on_mount=True)

    await cache.ensure(KEY, fetcher, policy)
    with cache.observe(KEY, fetcher, policy):
        await settle()

    assert fetcher.calls == 2


@pytest.mark.anyio
async def test_failed_fetch_is_an_explicit_error_state():
    cache = QueryCache()
    fetcher = FakeFetcher("first", TransientGatewayError("get_order_by_id", "boom"), "recovered")
    policy = RefreshPolicy()
    entry = cache.entry(KEY, fetcher, policy)

    await entry.fetch()
    await entry.fetch()

    assert entry.status is QueryStatus.ERROR
    assert entry.is_error and not entry.is_loading
    assert entry.data == "first"
    assert isinstance(entry.error, TransientGatewayError)

    await entry.refetch()

    assert entry.status is QueryStatus.SUCCESS
    assert entry.data == "recovered"
    assert entry.error is None


@pytest.mark.anyio
async def test_ensure_raises_the_entry_error():
    cache = QueryCache()
    fetcher = FakeFetcher(TransientGatewayError("get_menu", "down"))

    with pytest.raises(TransientGatewayError):
        await cache.ensure(("menu",), fetcher, RefreshPolicy())


@pytest.mark.anyio
async def test_empty_result_is_success_not_loading():
    cache = QueryCache()
    subscription = cache.observe(("allOrders",), FakeFetcher([]), RefreshPolicy())
    assert subscription.data is None

    await settle()

    assert subscription.status is QueryStatus.SUCCESS
    assert subscription.data == []
    subscription.close()


@pytest.mark.anyio
async def test_poller_runs_only_while_observed():
    cache = QueryCache()
    fetcher = FakeFetcher("x")
    policy = RefreshPolicy(refetch_interval=0.02, refetch_on_mount=True)

    first = cache.observe(KEY, fetcher, policy)
    second = cache.observe(KEY, fetcher, policy)
    entry = cache.get(KEY)
    assert entry.is_polling
    assert entry.observer_count == 2

    await asyncio.sleep(0.1)
    assert fetcher.calls >= 3

    first.close()
    assert entry.is_polling

    second.close()
    assert not entry.is_polling
    calls = fetcher.calls
    await asyncio.sleep(0.08)
    assert fetcher.calls == calls
    await cache.close()


@pytest.mark.anyio
async def test_closing_twice_does_not_stop_other_observers():
    cache = QueryCache()
    policy = RefreshPolicy(refetch_interval=1)
    first = cache.observe(KEY, FakeFetcher("x"), policy)
    second = cache.observe(KEY, FakeFetcher("x"), policy)

    first.close()
    first.close()

    assert cache.get(KEY).observer_count == 1
    assert cache.get(KEY).is_polling
    second.close()
    await cache.close()


@pytest.mark.anyio
async def test_in_flight_request_survives_unsubscribe():
    cache = QueryCache()
    gate = asyncio.Event()
    seen = []

    async def fetcher():
        await gate.wait()
        return "late"

    subscription = cache.observe(KEY, fetcher, RefreshPolicy(refetch_on_mount=True), seen.append)
    await settle()
    subscription.close()
    seen.clear()

    gate.set()
    await settle()

    entry = cache.get(KEY)
    assert entry.data == "late"
    assert entry.status is QueryStatus.SUCCESS
    assert seen == []


@pytest.mark.anyio
async def test_out_of_order_response_is_discarded():
    cache = QueryCache()
    gates = [asyncio.Event(), asyncio.Event()]
    values = ["accepted", "preparing"]
    issued = 0

    async def fetcher():
        nonlocal issued
        index = issued
        issued += 1
        await gates[index].wait()
        return values[index]

    entry = cache.entry(KEY, fetcher, RefreshPolicy())
    slow = asyncio.create_task(entry.fetch())
    await settle()
    fast = asyncio.create_task(entry.fetch())
    await settle()

    gates[1].set()
    await fast
    gates[0].set()
    await slow

    assert entry.data == "preparing"


@pytest.mark.anyio
async def test_invalidate_refetches_observed_and_marks_unobserved():
    cache = QueryCache()
    observed_fetcher = FakeFetcher("list-v1", "list-v2")
    idle_fetcher = FakeFetcher("detail-v1", "detail-v2")
    policy = RefreshPolicy(stale_time=60)

    subscription = cache.observe(("allOrders",), observed_fetcher, policy)
    await cache.ensure(("orderById", "o1"), idle_fetcher, policy)
    await settle()

    invalidated = cache.invalidate(("allOrders",))
    invalidated += cache.invalidate(("orderById",))
    await settle()

    assert set(invalidated) == {("allOrders",), ("orderById", "o1")}
    assert subscription.data == "list-v2"
    assert idle_fetcher.calls == 1
    assert cache.get(("orderById", "o1")).is_stale()

    assert await cache.ensure(("orderById", "o1"), idle_fetcher, policy) == "detail-v2"
    assert not cache.get(("orderById", "o1")).invalidated
    subscription.close()


@pytest.mark.anyio
async def test_fetch_started_before_invalidation_leaves_entry_stale():
    cache = QueryCache()
    gate = asyncio.Event()

    async def fetcher():
        await gate.wait()
        return "pre-mutation"

    entry = cache.entry(KEY, fetcher, RefreshPolicy(stale_time=60))
    in_flight = asyncio.create_task(entry.fetch())
    await settle()

    cache.invalidate(KEY)
    gate.set()
    await in_flight

    assert entry.data == "pre-mutation"
    assert entry.is_stale()


@pytest.mark.anyio
async def test_listeners_hear_each_state_change():
    cache = QueryCache()
    statuses = []

    subscription = cache.observe(("menu",), FakeFetcher(["dosa"]), RefreshPolicy(), lambda e: statuses.append(e.status))
    await settle()

    assert statuses == [QueryStatus.LOADING, QueryStatus.SUCCESS]
    subscription.close()


@pytest.mark.anyio
async def test_close_cancels_pollers():
    cache = QueryCache()
    cache.observe(KEY, FakeFetcher("x"), RefreshPolicy(refetch_interval=0.01))
    cache.observe(("allOrders",), FakeFetcher([]), RefreshPolicy(refetch_interval=0.01))

    await cache.close()

    assert not cache.get(KEY).is_polling
    assert not cache.get(("allOrders",)).is_polling


@pytest.mark.anyio
async def test_view_mounted_during_pre_invalidation_fetch_gets_fresh_data(wait_for):
    cache = QueryCache()
    gate = asyncio.Event()
    backend = {"value": "old"}

    async def fetcher():
        value = backend["value"]
        if not gate.is_set():
            await gate.wait()
        return value

    policy = RefreshPolicy(stale_time=60)
    read = asyncio.create_task(cache.ensure(("menu",), fetcher, policy))
    await settle()

    backend["value"] = "new"
    cache.invalidate(("menu",))
    subscription = cache.observe(("menu",), fetcher, policy)
    gate.set()
    assert await read == "old"

    await wait_for(lambda: subscription.data == "new")
    assert not cache.get(("menu",)).invalidated
    subscription.close()
