"""Unit tests for per-item fan-out with failure isolation."""

import asyncio

import pytest

from foldhost.errors import TransportError
from foldhost.reconcile.fanout import attempt, for_each
from foldhost.reconcile.state import Step


async def test_attempt_success():
    async def _ok():
        return 42

    assert await attempt(Step.ISSUE_CERTS, "x", _ok, 1) == (42, None)


async def test_attempt_transport_error():
    async def _fail():
        raise TransportError("certbot", 1, "boom")

    value, failure = await attempt(Step.ISSUE_CERTS, "x", _fail, 1)
    assert value is None
    assert failure.step is Step.ISSUE_CERTS
    assert failure.target == "x"
    assert "boom" in failure.message


async def test_attempt_programming_error_propagates():
    async def _bug():
        raise KeyError("oops")

    with pytest.raises(KeyError):
        await attempt(Step.ISSUE_CERTS, "x", _bug, 1)


async def test_for_each_sequential_order():
    seen = []

    async def _action(item):
        seen.append(item)
        return item * 2

    results = await for_each(Step.START_CONTAINERS, [3, 1, 2], _action)
    assert seen == [3, 1, 2]
    assert [(item, value) for item, value, _ in results] == [(3, 6), (1, 2), (2, 4)]


async def test_for_each_concurrency_bound():
    active = 0
    peak = 0

    async def _action(item):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1

    results = await for_each(Step.START_CONTAINERS, range(8), _action, concurrency=3)
    assert peak == 3
    assert [item for item, _, _ in results] == list(range(8))


async def test_for_each_collects_every_failure():
    async def _action(item):
        if item % 2:
            raise TransportError(f"cmd {item}", 1)

    results = await for_each(Step.STOP_ORPHANS, [0, 1, 2, 3], _action, target_of=lambda i: f"svc{i}", concurrency=2)
    assert [f.target for _, _, f in results if f is not None] == ["svc1", "svc3"]
