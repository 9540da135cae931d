import asyncio

import pytest

from storefront.services.gateway import RejectedError
from storefront.services.mutations import Mutation, MutationStatus
from storefront.services.query_cache import QueryCache, RefreshPolicy


async def _value():
    return "v"


@pytest.mark.anyio
async def test_success_invalidates_listed_keys():
    cache = QueryCache()
    await cache.ensure(("allOrders",), _value, RefreshPolicy(stale_time=60))
    await cache.ensure(("menu",), _value, RefreshPolicy(stale_time=60))

    async def write(order_id):
        return order_id.upper()

    mutation = Mutation("update_order_status", write, cache, lambda order_id: (("allOrders",),))
    assert await mutation.mutate_async("o1") == "O1"

    assert mutation.status is MutationStatus.SUCCESS
    assert mutation.variables == ("o1",)
    assert cache.get(("allOrders",)).invalidated
    assert not cache.get(("menu",)).invalidated


@pytest.mark.anyio
async def test_failure_is_recorded_and_nothing_invalidated():
    cache = QueryCache()
    await cache.ensure(("allOrders",), _value, RefreshPolicy(stale_time=60))

    async def write(order_id):
        raise RejectedError("cancel_order", "already delivered", status_code=409)

    mutation = Mutation("cancel_order", write, cache, lambda order_id: (("allOrders",),))

    with pytest.raises(RejectedError):
        await mutation.mutate_async("o1")
    assert mutation.is_error
    assert mutation.error.status_code == 409
    assert not cache.get(("allOrders",)).invalidated

    assert await mutation.mutate("o1") is None
    assert mutation.status is MutationStatus.ERROR

    mutation.reset()
    assert mutation.status is MutationStatus.IDLE
    assert mutation.error is None


@pytest.mark.anyio
async def test_pending_is_tracked_per_target():
    gate = asyncio.Event()

    async def write(order_id):
        await gate.wait()

    mutation = Mutation("delete_order", write, QueryCache())
    task = asyncio.create_task(mutation.mutate_async("o1"))
    await asyncio.sleep(0)

    assert mutation.is_pending
    assert mutation.is_pending_for("o1")
    assert not mutation.is_pending_for("o2")

    gate.set()
    await task
    assert not mutation.is_pending
