"""Orchestration of sync runs per source."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Iterable, Mapping

import httpx

from ..catalog import CatalogStore
from ..config import Settings
from ..errors import CatalogUnavailable
from ..services.images import ImageResolver
from ..services.torrents import EZTVScraper, YTSScraper
from ..services.trakt import TraktClient
from .batch import BatchReport, BatchRunner
from .providers import SyncProvider, TorrentIndexSync, TraktUpdatesSync
from .resolver import ContentResolver
from .retry import RetryPolicy
from .seasons import SeasonWalker
from .upsert import UpsertCoordinator

logger = logging.getLogger(__name__)


class UnknownSource(KeyError):
    """Raised when a run is requested for a source that is not configured."""


class SyncService:
    """Run sync providers one source at a time and remember their reports."""

    def __init__(
        self,
        store: CatalogStore,
        providers: Iterable[SyncProvider],
        *,
        interval_seconds: int = 0,
    ):
        self._store = store
        self._providers: dict[str, SyncProvider] = {
            provider.name: provider for provider in providers
        }
        self._interval_seconds = interval_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._reports: dict[str, BatchReport] = {}
        self._jobs: dict[str, asyncio.Task[BatchReport | None]] = {}
        self._schedule_task: asyncio.Task[None] | None = None

    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(self._providers)

    @property
    def reports(self) -> Mapping[str, BatchReport]:
        return dict(self._reports)

    def is_running(self, source: str) -> bool:
        lock = self._locks.get(source)
        return bool(lock and lock.locked())

    async def start(self) -> None:
        """Verify the catalog and launch the scheduled loop when configured."""

        await self._store.ping()
        if self._interval_seconds and self._schedule_task is None:
            self._schedule_task = asyncio.create_task(self._schedule_loop())

    async def stop(self) -> None:
        """Cancel the scheduled loop and any background runs."""

        tasks = [task for task in self._jobs.values() if not task.done()]
        if self._schedule_task is not None:
            tasks.append(self._schedule_task)
            self._schedule_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task

    async def run_sync(self, source: str) -> BatchReport:
        """Run one source to completion.

        Only :class:`CatalogUnavailable` escapes; item and page failures are
        absorbed into the returned report.
        """

        provider = self._providers.get(source)
        if provider is None:
            raise UnknownSource(source)

        lock = self._locks.setdefault(source, asyncio.Lock())
        async with lock:
            await self._store.ping()
            logger.info("%s: Starting scraping...", source)
            try:
                report = await provider.run()
            except CatalogUnavailable:
                raise
            except Exception as exc:
                logger.exception("%s: sync run aborted: %s", source, exc)
                report = BatchReport(source=source, stopped_reason=f"aborted: {exc}")
            self._reports[source] = report
            return report

    def trigger(self, source: str) -> bool:
        """Start ``source`` in the background; ``False`` when it is already running."""

        if source not in self._providers:
            raise UnknownSource(source)
        existing = self._jobs.get(source)
        if (existing and not existing.done()) or self.is_running(source):
            return False

        async def _runner() -> BatchReport | None:
            try:
                return await self.run_sync(source)
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception("Background sync for %s failed: %s", source, exc)
                return None
            finally:
                self._jobs.pop(source, None)

        self._jobs[source] = asyncio.create_task(_runner())
        return True

    async def _schedule_loop(self) -> None:
        while True:
            for source in self.sources:
                try:
                    await self.run_sync(source)
                except Exception as exc:  # pragma: no cover - background safety net
                    logger.exception("Scheduled sync for %s failed: %s", source, exc)
            await asyncio.sleep(self._interval_seconds)


def build_sync_service(
    settings: Settings,
    *,
    store: CatalogStore,
    trakt: TraktClient,
    images: ImageResolver,
    yts_client: httpx.AsyncClient,
    eztv_client: httpx.AsyncClient,
) -> SyncService:
    """Wire the production providers from settings and injected clients."""

    retry = RetryPolicy(
        retries=settings.sync_retry_attempts,
        backoff_seconds=settings.sync_retry_backoff_seconds,
    )
    walker = SeasonWalker(
        trakt,
        season_cap=settings.season_cap,
        delay_seconds=settings.season_delay_seconds,
        retry=retry,
    )
    resolver = ContentResolver(trakt, images, walker, retry=retry)
    upserts = UpsertCoordinator(store)

    def runner(
        page_delay: float, item_delay: float, *, parallelism: int | None = None
    ) -> BatchRunner:
        return BatchRunner(
            parallelism=parallelism or settings.sync_parallelism,
            retry=retry,
            page_delay_seconds=page_delay,
            item_delay_seconds=item_delay,
            max_failed_pages=settings.sync_max_failed_pages,
            max_pages=settings.sync_max_pages,
        )

    available: dict[str, SyncProvider] = {}
    for name, content_type in (("trakt-movies", "movie"), ("trakt-shows", "show")):
        available[name] = TraktUpdatesSync(
            name,
            content_type,
            metadata=trakt,
            resolver=resolver,
            store=store,
            upserts=upserts,
            # Season walks share the Trakt quota, so shows stay serial.
            runner=runner(
                settings.trakt_delay_seconds,
                settings.trakt_delay_seconds,
                parallelism=1 if content_type == "show" else None,
            ),
            default_start_date=settings.default_start_date(content_type),
            min_year=settings.sync_min_year,
            page_limit=settings.sync_page_limit,
        )
    available["yts"] = TorrentIndexSync(
        YTSScraper(yts_client),
        resolver=resolver,
        store=store,
        upserts=upserts,
        runner=runner(settings.yts_delay_seconds, 0.0),
    )
    available["eztv"] = TorrentIndexSync(
        EZTVScraper(eztv_client),
        resolver=resolver,
        store=store,
        upserts=upserts,
        runner=runner(
            settings.eztv_delay_seconds, settings.trakt_delay_seconds, parallelism=1
        ),
    )

    providers = [available[source] for source in settings.sync_sources]
    return SyncService(store, providers, interval_seconds=settings.sync_interval_seconds)
