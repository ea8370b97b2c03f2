"""Capabilities the sync engine expects from upstream collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol

from ..models import ContentType, ExternalIds, ImageSet, TorrentSlot


class MetadataService(Protocol):
    """Change feed and detail lookups (Trakt in production)."""

    async def updates(
        self, content_type: ContentType, start_date: date, *, page: int, limit: int
    ) -> list[dict[str, Any]]: ...

    async def summary(self, content_type: ContentType, item_id: int | str) -> dict[str, Any]: ...

    async def watcher_count(self, content_type: ContentType, item_id: int | str) -> int | None: ...

    async def season_episodes(self, show_id: int | str, season: int) -> list[dict[str, Any]]: ...


class ImageProvider(Protocol):
    """One link of the artwork fallback chain."""

    name: str

    async def fetch_images(self, ids: ExternalIds, content_type: ContentType) -> ImageSet: ...


@dataclass(slots=True)
class RawTorrentItem:
    """A single release as reported by a torrent index page."""

    imdb_id: str
    title: str
    quality: str
    url: str
    provider: str
    language: str = "en"
    seed: int = 0
    peer: int = 0
    size: int | None = None
    filesize: str | None = None
    season: int | None = None
    episode: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_slot(self) -> TorrentSlot:
        return TorrentSlot(
            url=self.url,
            seed=self.seed,
            peer=self.peer,
            size=self.size,
            filesize=self.filesize,
            provider=self.provider,
        )


@dataclass(slots=True)
class IndexPage:
    """Usable releases of one index page and the number of rows the site sent."""

    items: list[RawTorrentItem] = field(default_factory=list)
    raw_count: int = 0


class TorrentIndex(Protocol):
    """A paged torrent index (one implementation per site)."""

    name: str
    content_type: ContentType

    async def list_page(self, page: int) -> IndexPage: ...
