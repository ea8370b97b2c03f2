"""Sync service orchestration tests."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from popsync.config import Settings
from popsync.errors import CatalogUnavailable
from popsync.services.images import ImageResolver
from popsync.services.trakt import TraktClient
from popsync.sync.batch import BatchReport
from popsync.sync.service import SyncService, UnknownSource, build_sync_service


class FakeStore:
    def __init__(self, available: bool = True):
        self.available = available

    async def ping(self) -> None:
        if not self.available:
            raise CatalogUnavailable("database is down")


class FakeProvider:
    content_type = "movie"

    def __init__(self, name: str, *, error: Exception | None = None):
        self.name = name
        self.error = error
        self.runs = 0
        self.release = asyncio.Event()
        self.release.set()

    async def run(self) -> BatchReport:
        self.runs += 1
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return BatchReport(source=self.name, processed=1, stopped_reason="upstream exhausted")


@pytest.mark.anyio("asyncio")
async def test_run_sync_records_the_report() -> None:
    provider = FakeProvider("yts")
    service = SyncService(FakeStore(), [provider])

    report = await service.run_sync("yts")

    assert report.processed == 1
    assert service.reports["yts"] is report
    assert service.sources == ("yts",)


@pytest.mark.anyio("asyncio")
async def test_unknown_source_is_rejected() -> None:
    service = SyncService(FakeStore(), [FakeProvider("yts")])

    with pytest.raises(UnknownSource):
        await service.run_sync("kat")
    with pytest.raises(UnknownSource):
        service.trigger("kat")


@pytest.mark.anyio("asyncio")
async def test_unreachable_catalog_fails_the_run() -> None:
    provider = FakeProvider("yts")
    service = SyncService(FakeStore(available=False), [provider])

    with pytest.raises(CatalogUnavailable):
        await service.run_sync("yts")
    assert provider.runs == 0


@pytest.mark.anyio("asyncio")
async def test_unexpected_provider_error_becomes_aborted_report() -> None:
    service = SyncService(FakeStore(), [FakeProvider("eztv", error=RuntimeError("boom"))])

    report = await service.run_sync("eztv")

    assert report.stopped_reason == "aborted: boom"
    assert service.reports["eztv"] is report


@pytest.mark.anyio("asyncio")
async def test_trigger_refuses_overlapping_runs() -> None:
    provider = FakeProvider("yts")
    provider.release.clear()
    service = SyncService(FakeStore(), [provider])

    assert service.trigger("yts") is True
    await asyncio.sleep(0)
    assert service.is_running("yts") is True
    assert service.trigger("yts") is False

    provider.release.set()
    for _ in range(5):
        await asyncio.sleep(0)
    assert service.is_running("yts") is False
    assert provider.runs == 1
    await service.stop()


@pytest.mark.anyio("asyncio")
async def test_build_sync_service_honours_configured_sources() -> None:
    settings = Settings(_env_file=None, SYNC_SOURCES="yts,trakt-shows")  # type: ignore[call-arg]
    async with httpx.AsyncClient() as http_client:
        service = build_sync_service(
            settings,
            store=FakeStore(),  # type: ignore[arg-type]
            trakt=TraktClient(settings, http_client),
            images=ImageResolver([], placeholder=settings.placeholder_image),
            yts_client=http_client,
            eztv_client=http_client,
        )

    assert service.sources == ("yts", "trakt-shows")
