"""Batch runner tests: page failures, item isolation and parallelism."""

from __future__ import annotations

import asyncio

import pytest

from popsync.errors import IdentityUnresolvable, TransientUpstreamError, UpsertFailed
from popsync.sync.batch import BatchRunner, ItemOutcome
from popsync.sync.retry import RetryPolicy


def _runner(**kwargs) -> BatchRunner:
    kwargs.setdefault("retry", RetryPolicy(retries=1, backoff_seconds=0))
    return BatchRunner(**kwargs)


@pytest.mark.anyio("asyncio")
async def test_failed_page_is_skipped_and_run_continues() -> None:
    calls: list[int] = []
    processed: list[str] = []

    async def fetch_page(page: int) -> list[str]:
        calls.append(page)
        if page == 1:
            raise TransientUpstreamError("timeout")
        if page == 2:
            return ["a", "b"]
        return []

    async def process(item: str) -> ItemOutcome:
        processed.append(item)
        return ItemOutcome.PROCESSED

    report = await _runner().run("test", fetch_page, process)

    assert calls == [1, 1, 2, 3]
    assert processed == ["a", "b"]
    assert report.failed_pages == 1
    assert report.pages == 3
    assert report.processed == 2
    assert report.stopped_reason == "upstream exhausted"


@pytest.mark.anyio("asyncio")
async def test_item_failures_do_not_affect_siblings() -> None:
    async def fetch_page(page: int) -> list[str]:
        return ["ok", "boom", "upsert", "noid", "empty"] if page == 1 else []

    async def process(item: str) -> ItemOutcome:
        if item == "boom":
            raise ValueError("bad payload")
        if item == "upsert":
            raise UpsertFailed("tt1", "locked")
        if item == "noid":
            raise IdentityUnresolvable("no ids")
        if item == "empty":
            return ItemOutcome.EMPTY
        return ItemOutcome.PROCESSED

    report = await _runner(parallelism=3).run("test", fetch_page, process)

    assert report.processed == 1
    assert report.failed == 2
    assert report.skipped == 1
    assert report.empty == 1


@pytest.mark.anyio("asyncio")
async def test_parallelism_ceiling_is_respected() -> None:
    active = 0
    peak = 0

    async def fetch_page(page: int) -> list[int]:
        return list(range(10)) if page == 1 else []

    async def process(item: int) -> ItemOutcome:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return ItemOutcome.PROCESSED

    report = await _runner(parallelism=3).run("test", fetch_page, process)

    assert report.processed == 10
    assert peak == 3


@pytest.mark.anyio("asyncio")
async def test_consecutive_page_failures_stop_the_run() -> None:
    async def fetch_page(page: int) -> list[str]:
        raise TransientUpstreamError("down")

    async def process(item: str) -> ItemOutcome:
        raise AssertionError("no items expected")

    report = await _runner(max_failed_pages=3).run("test", fetch_page, process)

    assert report.failed_pages == 3
    assert report.processed == 0
    assert report.stopped_reason == "3 consecutive pages failed"


@pytest.mark.anyio("asyncio")
async def test_max_pages_bounds_the_run() -> None:
    async def fetch_page(page: int) -> list[int]:
        return [page]

    async def process(item: int) -> ItemOutcome:
        return ItemOutcome.PROCESSED

    report = await _runner(max_pages=2).run("test", fetch_page, process)

    assert report.pages == 2
    assert report.processed == 2
    assert report.finished_at is not None
    assert report.as_dict()["stopped_reason"] == "reached the limit of 2 pages"


def _record_sleeps(monkeypatch) -> list[float]:
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay: float, *args, **kwargs) -> None:
        delays.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays


def test_courtesy_delays_follow_pages_and_items(monkeypatch) -> None:
    delays = _record_sleeps(monkeypatch)

    async def fetch_page(page: int) -> list[str]:
        return ["a", "b"] if page == 1 else []

    async def process(item: str) -> ItemOutcome:
        return ItemOutcome.PROCESSED

    runner = _runner(page_delay_seconds=2.0, item_delay_seconds=0.5)
    report = asyncio.run(runner.run("test", fetch_page, process))

    assert report.processed == 2
    assert delays == [0.5, 0.5, 2.0]


def test_skipped_items_do_not_wait(monkeypatch) -> None:
    delays = _record_sleeps(monkeypatch)

    async def fetch_page(page: int) -> list[str]:
        return ["a"] if page == 1 else []

    async def process(item: str) -> ItemOutcome:
        return ItemOutcome.SKIPPED

    runner = _runner(page_delay_seconds=2.0, item_delay_seconds=0.5)
    asyncio.run(runner.run("test", fetch_page, process))

    assert delays == [2.0]


def test_failed_page_waits_backoff_then_page_delay(monkeypatch) -> None:
    delays = _record_sleeps(monkeypatch)
    calls: list[int] = []

    async def fetch_page(page: int) -> list[str]:
        calls.append(page)
        if page == 1:
            raise TransientUpstreamError("timeout")
        return []

    async def process(item: str) -> ItemOutcome:
        raise AssertionError("no items expected")

    runner = _runner(
        retry=RetryPolicy(retries=1, backoff_seconds=1.0), page_delay_seconds=2.0
    )
    report = asyncio.run(runner.run("test", fetch_page, process))

    assert calls == [1, 1, 2]
    assert report.failed_pages == 1
    assert report.processed == 0
    assert delays == [1.0, 2.0]
