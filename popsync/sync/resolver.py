"""Resolve upstream identifiers into complete catalog records."""

from __future__ import annotations

import logging
from functools import partial

from ..errors import IdentityUnresolvable, UpstreamError
from ..models import ContentRecord, ContentType, ExternalIds, TorrentMap
from ..services.base import MetadataService
from ..services.images import ImageResolver
from .retry import RetryPolicy
from .seasons import SeasonWalker

logger = logging.getLogger(__name__)


def lookup_id(ids: ExternalIds) -> int | str:
    """Pick the identifier Trakt lookups should use."""

    if ids.trakt is not None:
        return ids.trakt
    if ids.slug:
        return ids.slug
    if ids.imdb:
        return ids.imdb
    raise IdentityUnresolvable("No Trakt-compatible identifier")


class ContentResolver:
    """Combine summary, artwork, watcher counts and episodes into a record."""

    def __init__(
        self,
        metadata: MetadataService,
        images: ImageResolver,
        seasons: SeasonWalker,
        *,
        retry: RetryPolicy | None = None,
    ):
        self._metadata = metadata
        self._images = images
        self._seasons = seasons
        self._retry = retry or RetryPolicy()

    async def resolve(
        self,
        content_type: ContentType,
        item_id: int | str,
        *,
        torrents: TorrentMap | None = None,
    ) -> ContentRecord | None:
        if content_type == "movie":
            return await self.resolve_movie(item_id, torrents=torrents)
        return await self.resolve_show(item_id)

    async def resolve_movie(
        self, item_id: int | str, *, torrents: TorrentMap | None = None
    ) -> ContentRecord:
        detail = await self._summary("movie", item_id)
        ids = ExternalIds.model_validate(detail.get("ids") or {})
        images = await self._images.resolve(ids, "movie")
        watching = await self._watching("movie", item_id)
        return ContentRecord.from_trakt_payload(
            detail,
            content_type="movie",
            images=images,
            watching=watching,
            torrents=torrents if torrents is not None else {"en": {}},
        )

    async def resolve_show(self, item_id: int | str) -> ContentRecord | None:
        """Return the show with every episode, or ``None`` when it has none."""

        detail = await self._summary("show", item_id)
        ids = ExternalIds.model_validate(detail.get("ids") or {})
        images = await self._images.resolve(ids, "show")
        walk = await self._seasons.walk(
            ids.trakt if ids.trakt is not None else item_id, title=detail.get("title")
        )
        if not walk.episodes:
            logger.info("Show %s has no episodes", detail.get("title") or item_id)
            return None
        watching = await self._watching("show", item_id)
        return ContentRecord.from_trakt_payload(
            detail,
            content_type="show",
            images=images,
            watching=watching,
            episodes=walk.episodes,
            num_seasons=walk.num_seasons,
        )

    async def _summary(self, content_type: ContentType, item_id: int | str) -> dict:
        return await self._retry.call(
            partial(self._metadata.summary, content_type, item_id),
            description=f"{content_type} summary {item_id}",
        )

    async def _watching(self, content_type: ContentType, item_id: int | str) -> int:
        try:
            count = await self._retry.call(
                partial(self._metadata.watcher_count, content_type, item_id),
                description=f"{content_type} watchers {item_id}",
            )
        except UpstreamError as exc:
            logger.debug("Watcher count unavailable for %s %s: %s", content_type, item_id, exc)
            return 0
        return count or 0
