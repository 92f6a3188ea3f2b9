from __future__ import annotations

import asyncio

import pytest

from smartlinker.engine.cache import (
    CachePolicy,
    RequestCoalescer,
    PolicyCache,
    content_fingerprint,
    response_cache_key,
)


def test_entries_expire_after_ttl(clock):
    cache = PolicyCache(CachePolicy(ttl_seconds=60, max_entries=10, evict_batch=2), clock=clock)
    cache["a"] = {"value": 1}

    clock.advance(59)
    assert cache.get("a") == {"value": 1}

    clock.advance(2)
    assert cache.get("a") is None
    assert "a" not in cache


def test_overflow_evicts_oldest_batch(clock):
    cache = PolicyCache(CachePolicy(ttl_seconds=600, max_entries=4, evict_batch=2), clock=clock)
    for key in "abcde":
        cache[key] = key
        clock.advance(1)

    assert len(cache) == 3
    assert cache.get("a") is None
    assert cache.get("b") is None
    assert cache.get("e") == "e"


def test_policy_reads_config_section():
    policy = CachePolicy.from_dict({"ttl_seconds": 5, "max_entries": 7})

    assert policy.ttl_seconds == 5.0
    assert policy.max_entries == 7
    assert policy.evict_batch == 100


def test_cache_key_uses_content_prefix_and_budget():
    base = "x" * 1000
    key = response_cache_key("42", base + "tail one", 5)

    assert key == response_cache_key("42", base + "tail two", 5)
    assert key != response_cache_key("42", base + "tail one", 3)
    assert key.startswith("smart-link:42:")
    assert len(content_fingerprint("hello")) == 16


@pytest.mark.asyncio
async def test_coalescer_shares_one_computation():
    coalescer = RequestCoalescer()
    calls = []

    async def compute():
        calls.append(1)
        await asyncio.sleep(0.01)
        return {"links": []}

    results = await asyncio.gather(*(coalescer.run("key", compute) for _ in range(5)))

    assert len(calls) == 1
    assert all(result == {"links": []} for result in results)
    assert coalescer.in_flight == 0


@pytest.mark.asyncio
async def test_coalescer_propagates_failure_and_clears_entry():
    coalescer = RequestCoalescer()

    async def compute():
        await asyncio.sleep(0.01)
        raise RuntimeError("boom")

    results = await asyncio.gather(
        coalescer.run("key", compute),
        coalescer.run("key", compute),
        return_exceptions=True,
    )

    assert all(isinstance(result, RuntimeError) for result in results)
    assert coalescer.in_flight == 0


@pytest.mark.asyncio
async def test_coalescer_runs_again_after_settling():
    coalescer = RequestCoalescer()
    calls = []

    async def compute():
        calls.append(1)
        return len(calls)

    assert await coalescer.run("key", compute) == 1
    assert await coalescer.run("key", compute) == 2


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_joiners():
    coalescer = RequestCoalescer()
    calls = []

    async def compute():
        calls.append(1)
        await asyncio.sleep(0.02)
        return {"links": ["shared"]}

    leader = asyncio.ensure_future(coalescer.run("key", compute))
    await asyncio.sleep(0)
    joiner = asyncio.ensure_future(coalescer.run("key", compute))
    await asyncio.sleep(0)
    leader.cancel()

    assert await joiner == {"links": ["shared"]}
    assert leader.cancelled()
    assert calls == [1]
    assert coalescer.in_flight == 0
