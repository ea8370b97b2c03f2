"""SQLAlchemy-backed catalog store."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import CatalogEntry, EpisodeEntry
from .errors import CatalogUnavailable, UpsertFailed
from .models import ContentRecord, ContentType, EpisodeRecord, TorrentMap

logger = logging.getLogger(__name__)

_SCALAR_FIELDS: tuple[str, ...] = (
    "content_type",
    "imdb_id",
    "tmdb_id",
    "tvdb_id",
    "trakt_id",
    "slug",
    "title",
    "year",
    "synopsis",
    "runtime",
    "country",
    "language",
    "released",
    "trailer",
    "certification",
    "last_updated",
    "network",
    "air_day",
    "air_time",
    "status",
    "num_seasons",
    "aired_episodes",
    "latest_episode",
)

_EPISODE_FIELDS: tuple[str, ...] = (
    "title",
    "overview",
    "first_aired",
    "date_based",
    "watched",
    "tvdb_id",
)


def dump_torrents(torrents: TorrentMap) -> dict[str, dict[str, dict[str, Any]]]:
    return {
        language: {quality: slot.model_dump() for quality, slot in slots.items()}
        for language, slots in torrents.items()
    }


class CatalogStore:
    """Persist and query :class:`ContentRecord` objects.

    ``replace`` runs inside a single transaction so an interrupted run can never
    leave a record half written.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def ping(self) -> None:
        """Raise :class:`CatalogUnavailable` when the database cannot be reached."""

        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise CatalogUnavailable(f"Catalog store unreachable: {exc}") from exc

    async def find_by_key(self, key: str) -> ContentRecord | None:
        async with self._session_factory() as session:
            entry = await session.get(CatalogEntry, key)
            if entry is None:
                return None
            return self._to_record(entry)

    async def find_max_updated(self, content_type: ContentType) -> ContentRecord | None:
        """Return the record of ``content_type`` with the latest ``last_updated``."""

        async with self._session_factory() as session:
            stmt = (
                select(CatalogEntry)
                .where(CatalogEntry.content_type == content_type)
                .order_by(CatalogEntry.last_updated.desc())
                .limit(1)
            )
            result = await session.execute(stmt)
            entry = result.scalars().first()
            if entry is None:
                return None
            return self._to_record(entry)

    async def insert(self, record: ContentRecord) -> None:
        try:
            async with self._session_factory() as session:
                entry = CatalogEntry(id=record.id)
                self._apply(entry, record)
                session.add(entry)
                await session.commit()
            logger.debug("Inserted catalog entry %s", record.id)
        except SQLAlchemyError as exc:
            raise UpsertFailed(record.id, exc) from exc

    async def replace(self, key: str, record: ContentRecord) -> None:
        """Overwrite the stored entry for ``key`` with ``record``."""

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    entry = await session.get(CatalogEntry, key)
                    if entry is None:
                        raise UpsertFailed(key, "no stored record to replace")
                    self._apply(entry, record)
            logger.debug("Replaced catalog entry %s", key)
        except SQLAlchemyError as exc:
            raise UpsertFailed(key, exc) from exc

    @staticmethod
    def _apply(entry: CatalogEntry, record: ContentRecord) -> None:
        for field in _SCALAR_FIELDS:
            setattr(entry, field, getattr(record, field))
        entry.rating = record.rating.model_dump()
        entry.images = record.images.model_dump()
        entry.genres = list(record.genres)
        entry.torrents = dump_torrents(record.torrents)

        existing = {(row.season, row.episode): row for row in entry.episodes or []}
        rows: list[EpisodeEntry] = []
        for episode in record.episodes:
            row = existing.pop(episode.key, None)
            if row is None:
                row = EpisodeEntry(season=episode.season, episode=episode.episode)
            for field in _EPISODE_FIELDS:
                setattr(row, field, getattr(episode, field))
            row.ids = dict(episode.ids)
            row.torrents = dump_torrents(episode.torrents)
            rows.append(row)
        entry.episodes = rows

    @staticmethod
    def _to_record(entry: CatalogEntry) -> ContentRecord:
        payload: dict[str, Any] = {field: getattr(entry, field) for field in _SCALAR_FIELDS}
        payload.update(
            {
                "id": entry.id,
                "rating": entry.rating or {},
                "images": entry.images or {},
                "genres": entry.genres,
                "torrents": entry.torrents or {},
                "num_seasons": entry.num_seasons or 0,
                "episodes": [
                    EpisodeRecord.model_validate(
                        {
                            "season": row.season,
                            "episode": row.episode,
                            "ids": row.ids or {},
                            "torrents": row.torrents or {},
                            **{field: getattr(row, field) for field in _EPISODE_FIELDS},
                        }
                    )
                    for row in sorted(
                        entry.episodes, key=lambda row: (row.season, row.episode)
                    )
                ],
            }
        )
        return ContentRecord.model_validate(payload)
