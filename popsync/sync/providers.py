"""Per-source sync pipelines built on the batch runner."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..catalog import CatalogStore
from ..errors import CatalogUnavailable, TransientUpstreamError
from ..models import ChangeNotification, ContentRecord, ContentType, EpisodeRecord, TorrentMap
from ..services.base import MetadataService, RawTorrentItem, TorrentIndex
from .batch import BatchReport, BatchRunner, ItemOutcome, PageCounter
from .cursor import CursorTracker
from .resolver import ContentResolver, lookup_id
from .upsert import UpsertCoordinator

logger = logging.getLogger(__name__)


class SyncProvider(Protocol):
    name: str
    content_type: ContentType

    async def run(self) -> BatchReport: ...


class TraktUpdatesSync:
    """Replay the Trakt change feed from the catalog's cursor."""

    def __init__(
        self,
        name: str,
        content_type: ContentType,
        *,
        metadata: MetadataService,
        resolver: ContentResolver,
        store: CatalogStore,
        upserts: UpsertCoordinator,
        runner: BatchRunner,
        default_start_date: date,
        min_year: int,
        page_limit: int = 100,
    ):
        self.name = name
        self.content_type = content_type
        self._metadata = metadata
        self._resolver = resolver
        self._store = store
        self._upserts = upserts
        self._runner = runner
        self._default_start_date = default_start_date
        self._min_year = min_year
        self._page_limit = page_limit

    async def run(self) -> BatchReport:
        tracker = CursorTracker(
            self._store,
            self.content_type,
            default_start_date=self._default_start_date,
            min_year=self._min_year,
        )
        try:
            cursor = await tracker.open()
        except SQLAlchemyError as exc:
            raise CatalogUnavailable(f"Could not read the sync cursor: {exc}") from exc

        async def fetch_page(page: int) -> list[ChangeNotification]:
            entries = await self._metadata.updates(
                self.content_type, cursor.start_date, page=page, limit=self._page_limit
            )
            try:
                return [
                    ChangeNotification.from_trakt_payload(entry, content_type=self.content_type)
                    for entry in entries
                ]
            except (AttributeError, TypeError, ValueError) as exc:
                raise TransientUpstreamError(
                    f"{self.name}: malformed change feed on page {page}: {exc}"
                ) from exc

        async def process(notification: ChangeNotification) -> ItemOutcome:
            if not tracker.accept(notification):
                return ItemOutcome.SKIPPED
            record = await self._resolver.resolve(
                self.content_type, lookup_id(notification.ids)
            )
            if record is None:
                return ItemOutcome.EMPTY
            await self._upserts.upsert(record, source=self.name)
            logger.info("%s: Saved %s %s", self.name, self.content_type, record.title)
            return ItemOutcome.PROCESSED

        return await self._runner.run(
            self.name,
            fetch_page,
            process,
            pages=tracker,
            describe=lambda notification: notification.describe(),
        )


@dataclass(slots=True)
class TorrentBundle:
    """Releases of one title gathered from a single index page."""

    imdb_id: str
    title: str
    torrents: TorrentMap = field(default_factory=dict)
    episodes: dict[tuple[int, int], TorrentMap] = field(default_factory=dict)

    def add(self, item: RawTorrentItem) -> None:
        if item.season is not None and item.episode is not None:
            target = self.episodes.setdefault((item.season, item.episode), {})
        else:
            target = self.torrents
        slots = target.setdefault(item.language, {})
        current = slots.get(item.quality)
        # Several releases of one quality on the same page: keep the best seeded.
        if current is None or item.seed > current.seed:
            slots[item.quality] = item.to_slot()


def bundle_items(items: Sequence[RawTorrentItem]) -> list[TorrentBundle]:
    bundles: dict[str, TorrentBundle] = {}
    for item in items:
        bundle = bundles.get(item.imdb_id)
        if bundle is None:
            bundle = bundles[item.imdb_id] = TorrentBundle(imdb_id=item.imdb_id, title=item.title)
        bundle.add(item)
    return list(bundles.values())


class IndexPageCounter(PageCounter):
    """Judge terminal pages by the raw index rows, not the bundled titles."""

    def __init__(self, first_page: int = 1):
        super().__init__(first_page)
        self.raw_count = 0

    def is_page_terminal(self, items: Sequence[Any]) -> bool:  # type: ignore[override]
        return self.raw_count == 0


class TorrentIndexSync:
    """Attach torrents from a paged index to catalog records."""

    def __init__(
        self,
        index: TorrentIndex,
        *,
        resolver: ContentResolver,
        store: CatalogStore,
        upserts: UpsertCoordinator,
        runner: BatchRunner,
        name: str | None = None,
    ):
        self.name = name or index.name.lower()
        self.content_type = index.content_type
        self._index = index
        self._resolver = resolver
        self._store = store
        self._upserts = upserts
        self._runner = runner

    async def run(self) -> BatchReport:
        pages = IndexPageCounter()
        shows: dict[str, ContentRecord] = {}

        async def fetch_page(page: int) -> list[TorrentBundle]:
            result = await self._index.list_page(page)
            pages.raw_count = result.raw_count
            return bundle_items(result.items)

        async def process(bundle: TorrentBundle) -> ItemOutcome:
            if self.content_type == "movie":
                return await self._process_movie(bundle)
            return await self._process_show(bundle, shows)

        return await self._runner.run(
            self.name,
            fetch_page,
            process,
            pages=pages,
            describe=lambda bundle: f"{bundle.title} ({bundle.imdb_id})",
        )

    async def _process_movie(self, bundle: TorrentBundle) -> ItemOutcome:
        if not bundle.torrents:
            return ItemOutcome.SKIPPED
        record = await self._resolver.resolve_movie(bundle.imdb_id, torrents=bundle.torrents)
        await self._upserts.upsert(record, source=self.name)
        return ItemOutcome.PROCESSED

    async def _process_show(
        self, bundle: TorrentBundle, shows: dict[str, ContentRecord]
    ) -> ItemOutcome:
        if not bundle.episodes:
            return ItemOutcome.SKIPPED

        base = shows.get(bundle.imdb_id)
        if base is None:
            base = await self._store.find_by_key(bundle.imdb_id)
            if base is not None and self._already_complete(base):
                logger.info("%s: Show %s already finished", self.name, base.title)
                return ItemOutcome.SKIPPED
            if base is None:
                base = await self._resolver.resolve_show(bundle.imdb_id)
            if base is None:
                return ItemOutcome.EMPTY
            shows[bundle.imdb_id] = base

        await self._upserts.upsert(
            self._attach_episode_torrents(base, bundle), source=self.name
        )
        return ItemOutcome.PROCESSED

    @staticmethod
    def _already_complete(show: ContentRecord) -> bool:
        return show.status == "ended" and any(episode.torrents for episode in show.episodes)

    @staticmethod
    def _attach_episode_torrents(show: ContentRecord, bundle: TorrentBundle) -> ContentRecord:
        episodes = {episode.key: episode for episode in show.episodes}
        for key, torrents in bundle.episodes.items():
            episode = episodes.get(key)
            if episode is None:
                episodes[key] = EpisodeRecord(season=key[0], episode=key[1], torrents=torrents)
            else:
                episodes[key] = episode.model_copy(update={"torrents": torrents})
        return show.model_copy(
            update={"episodes": [episodes[key] for key in sorted(episodes)]}
        )
