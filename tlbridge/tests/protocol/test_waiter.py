from __future__ import annotations

import queue
import threading
import time

import pytest

from tlbridge.protocol.errors import ExchangeTimeout
from tlbridge.protocol.waiter import ResponseWaiter


def test_wait_returns_queued_line_immediately():
    q: "queue.Queue[str]" = queue.Queue()
    q.put("77025")
    w = ResponseWaiter(q)

    t0 = time.perf_counter()
    assert w.wait(1000) == "77025"
    assert time.perf_counter() - t0 < 0.05


def test_wait_consumes_in_fifo_order():
    q: "queue.Queue[str]" = queue.Queue()
    for line in ("a", "b", "c"):
        q.put(line)
    w = ResponseWaiter(q)

    assert [w.wait(10), w.wait(10), w.wait(10)] == ["a", "b", "c"]


def test_wait_blocks_until_line_arrives():
    q: "queue.Queue[str]" = queue.Queue()
    w = ResponseWaiter(q)

    threading.Timer(0.05, lambda: q.put("77020")).start()
    assert w.wait(1000) == "77020"


def test_wait_times_out():
    w = ResponseWaiter(queue.Queue())

    t0 = time.perf_counter()
    with pytest.raises(ExchangeTimeout) as ei:
        w.wait(50)
    elapsed = time.perf_counter() - t0

    assert ei.value.timeout_ms == 50
    assert 0.04 <= elapsed < 0.5


def test_wait_with_exhausted_budget_fails_without_blocking():
    w = ResponseWaiter(queue.Queue())
    with pytest.raises(ExchangeTimeout):
        w.wait(0)


def test_drain_returns_and_clears_stale_lines():
    q: "queue.Queue[str]" = queue.Queue()
    q.put("77020")
    q.put("77005")
    w = ResponseWaiter(q)

    assert w.pending() == 2
    assert w.drain() == ["77020", "77005"]
    assert w.pending() == 0
    assert w.drain() == []
