"""Pydantic models describing catalog records and upstream payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import IdentityUnresolvable
from .utils import coerce_int, parse_timestamp, to_epoch

ContentType = Literal["movie", "show"]

UNKNOWN_GENRE = "unknown"
DEFAULT_PLACEHOLDER = "images/posterholder.png"


class ExternalIds(BaseModel):
    """Identifiers an item carries across upstream services."""

    model_config = ConfigDict(extra="ignore")

    trakt: int | None = None
    slug: str | None = None
    imdb: str | None = None
    tmdb: int | None = None
    tvdb: int | None = None

    @field_validator("imdb", "slug", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def has_any(self, *names: str) -> bool:
        return any(getattr(self, name) is not None for name in names)


def derive_identity_key(ids: ExternalIds) -> str:
    """Return the stable catalog key for the supplied identifiers.

    IMDb ids are used verbatim. Without one the TMDB id is used with a ``tmdb-``
    prefix, then the Trakt id with a ``trakt-`` prefix.
    """

    if ids.imdb:
        return ids.imdb
    if ids.tmdb is not None:
        return f"tmdb-{ids.tmdb}"
    if ids.trakt is not None:
        return f"trakt-{ids.trakt}"
    raise IdentityUnresolvable(f"No usable identifier in {ids.model_dump(exclude_none=True)}")


class TorrentSlot(BaseModel):
    """A single release for one (language, quality) pair."""

    url: str
    seed: int = 0
    peer: int = 0
    size: int | None = None
    filesize: str | None = None
    provider: str | None = None


TorrentMap = dict[str, dict[str, TorrentSlot]]


class Rating(BaseModel):
    percentage: int = 0
    votes: int = 0
    watching: int = 0
    loved: int = 100
    hated: int = 100

    @classmethod
    def from_trakt(cls, rating: Any, votes: Any, watching: int = 0) -> "Rating":
        try:
            percentage = round(float(rating) * 10)
        except (TypeError, ValueError):
            percentage = 0
        return cls(
            percentage=percentage,
            votes=coerce_int(votes) or 0,
            watching=watching,
        )


class ImageSet(BaseModel):
    banner: str = DEFAULT_PLACEHOLDER
    fanart: str = DEFAULT_PLACEHOLDER
    poster: str = DEFAULT_PLACEHOLDER

    @classmethod
    def placeholder(cls, holder: str = DEFAULT_PLACEHOLDER) -> "ImageSet":
        return cls(banner=holder, fanart=holder, poster=holder)

    @classmethod
    def single(cls, url: str) -> "ImageSet":
        return cls(banner=url, fanart=url, poster=url)


class EpisodeRecord(BaseModel):
    """An episode owned by a show, keyed by ``(season, episode)``."""

    season: int
    episode: int
    title: str | None = None
    overview: str | None = None
    first_aired: int | None = None
    date_based: bool = False
    watched: bool = False
    tvdb_id: int | None = None
    ids: dict[str, Any] = Field(default_factory=dict)
    torrents: TorrentMap = Field(default_factory=dict)

    @property
    def key(self) -> tuple[int, int]:
        return (self.season, self.episode)

    @classmethod
    def from_trakt_payload(cls, data: dict[str, Any]) -> "EpisodeRecord":
        ids = data.get("ids") if isinstance(data.get("ids"), dict) else {}
        return cls(
            season=int(data["season"]),
            episode=int(data["number"]),
            title=data.get("title"),
            overview=data.get("overview"),
            first_aired=to_epoch(data.get("first_aired")),
            tvdb_id=coerce_int(ids.get("tvdb")),
            ids={key: value for key, value in ids.items() if value is not None},
        )


class ContentRecord(BaseModel):
    """Canonical catalog entry for a movie or a show."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    content_type: ContentType
    imdb_id: str | None = None
    tmdb_id: int | None = None
    tvdb_id: int | None = None
    trakt_id: int | None = None
    slug: str | None = None
    title: str
    year: int | None = None
    synopsis: str | None = None
    runtime: int | None = None
    country: str | None = None
    language: str | None = None
    rating: Rating = Field(default_factory=Rating)
    images: ImageSet = Field(default_factory=ImageSet)
    genres: list[str] = Field(default_factory=lambda: [UNKNOWN_GENRE])
    released: int | None = None
    trailer: str | None = None
    certification: str | None = None
    last_updated: datetime = Field(default_factory=datetime.utcnow)
    torrents: TorrentMap = Field(default_factory=dict)

    network: str | None = None
    air_day: int | None = None
    air_time: str | None = None
    status: str | None = None
    num_seasons: int = 0
    aired_episodes: int | None = None
    latest_episode: int | None = None
    episodes: list[EpisodeRecord] = Field(default_factory=list)

    @field_validator("genres", mode="before")
    @classmethod
    def _default_genres(cls, value: object) -> object:
        if not value:
            return [UNKNOWN_GENRE]
        return value

    @classmethod
    def from_trakt_payload(
        cls,
        detail: dict[str, Any],
        *,
        content_type: ContentType,
        images: ImageSet,
        watching: int = 0,
        episodes: list[EpisodeRecord] | None = None,
        num_seasons: int = 0,
        torrents: TorrentMap | None = None,
    ) -> "ContentRecord":
        """Build a record from a Trakt ``extended=full`` summary."""

        ids = ExternalIds.model_validate(detail.get("ids") or {})
        key = derive_identity_key(ids)
        updated_at = parse_timestamp(detail.get("updated_at")) or datetime.utcnow()
        record: dict[str, Any] = {
            "id": key,
            "content_type": content_type,
            "imdb_id": key if content_type == "movie" else ids.imdb,
            "tmdb_id": ids.tmdb,
            "tvdb_id": ids.tvdb,
            "trakt_id": ids.trakt,
            "slug": ids.slug,
            "title": detail.get("title") or key,
            "year": coerce_int(detail.get("year")),
            "synopsis": detail.get("overview"),
            "runtime": coerce_int(detail.get("runtime")),
            "country": detail.get("country"),
            "language": detail.get("language"),
            "rating": Rating.from_trakt(
                detail.get("rating"), detail.get("votes"), watching
            ),
            "images": images,
            "genres": detail.get("genres"),
            "certification": detail.get("certification"),
            "trailer": detail.get("trailer"),
            "last_updated": updated_at,
            "torrents": torrents or {},
        }
        if content_type == "movie":
            record["released"] = to_epoch(detail.get("released"))
        else:
            airs = detail.get("airs") if isinstance(detail.get("airs"), dict) else {}
            air_time = " ".join(
                str(part) for part in (airs.get("day"), airs.get("time")) if part
            )
            record.update(
                {
                    "network": detail.get("network"),
                    "air_day": to_epoch(detail.get("first_aired")),
                    "air_time": air_time or None,
                    "status": detail.get("status"),
                    "num_seasons": num_seasons,
                    "aired_episodes": coerce_int(detail.get("aired_episodes")),
                    "latest_episode": to_epoch(updated_at),
                    "episodes": episodes or [],
                }
            )
        return cls.model_validate(record)


class ChangeNotification(BaseModel):
    """One entry of an upstream change feed."""

    content_type: ContentType
    updated_at: datetime | None = None
    title: str | None = None
    year: int | None = None
    ids: ExternalIds = Field(default_factory=ExternalIds)

    @classmethod
    def from_trakt_payload(
        cls, data: dict[str, Any], *, content_type: ContentType
    ) -> "ChangeNotification":
        media = data.get(content_type)
        if not isinstance(media, dict):
            media = data
        return cls(
            content_type=content_type,
            updated_at=parse_timestamp(data.get("updated_at")),
            title=media.get("title"),
            year=coerce_int(media.get("year")),
            ids=ExternalIds.model_validate(media.get("ids") or {}),
        )

    def describe(self) -> str:
        ref = self.ids.trakt if self.ids.trakt is not None else self.ids.imdb
        return f"{self.content_type} {self.title!r} (trakt {ref})"
