"""Create-or-replace coordination for catalog records."""

from __future__ import annotations

import asyncio
import logging
import weakref

from sqlalchemy.exc import SQLAlchemyError

from ..catalog import CatalogStore
from ..errors import UpsertFailed
from ..models import ContentRecord, EpisodeRecord
from .merge import merge_torrents

logger = logging.getLogger(__name__)


def merge_episodes(
    existing: list[EpisodeRecord], candidate: list[EpisodeRecord]
) -> list[EpisodeRecord]:
    """Union two episode lists keyed by ``(season, episode)``.

    Candidate metadata wins, torrents merge slot by slot, and episodes only known
    to the stored show are kept.
    """

    stored = {episode.key: episode for episode in existing}
    merged = dict(stored)
    for episode in candidate:
        previous = stored.get(episode.key)
        if previous is None:
            merged[episode.key] = episode
            continue
        merged[episode.key] = episode.model_copy(
            update={
                "torrents": merge_torrents(previous.torrents, episode.torrents),
                "watched": previous.watched or episode.watched,
            }
        )
    return [merged[key] for key in sorted(merged)]


def merge_records(existing: ContentRecord, candidate: ContentRecord) -> ContentRecord:
    """Return ``candidate`` with torrents (and episodes) merged into ``existing``."""

    update: dict[str, object] = {
        "id": existing.id,
        "torrents": merge_torrents(existing.torrents, candidate.torrents),
    }
    if candidate.content_type == "show" or existing.episodes:
        update["episodes"] = merge_episodes(existing.episodes, candidate.episodes)
    return candidate.model_copy(update=update)


class UpsertCoordinator:
    """Insert new records and merge updates into existing ones.

    Only one upsert per identity key runs at a time; different keys proceed
    concurrently. A key's lock lives only while an upsert holds or awaits it.
    """

    def __init__(self, store: CatalogStore):
        self._store = store
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def upsert(
        self, candidate: ContentRecord, *, source: str = "popsync"
    ) -> ContentRecord:
        lock = self._locks.get(candidate.id)
        if lock is None:
            lock = self._locks[candidate.id] = asyncio.Lock()
        async with lock:
            try:
                existing = await self._store.find_by_key(candidate.id)
            except SQLAlchemyError as exc:
                raise UpsertFailed(candidate.id, exc) from exc

            if existing is None:
                logger.info(
                    "%s: '%s' is a new %s", source, candidate.title, candidate.content_type
                )
                await self._store.insert(candidate)
                return candidate

            logger.info(
                "%s: '%s' is an existing %s", source, existing.title, existing.content_type
            )
            merged = merge_records(existing, candidate)
            await self._store.replace(existing.id, merged)
            return merged
