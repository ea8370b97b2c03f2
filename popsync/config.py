"""Application configuration models."""

from __future__ import annotations

from datetime import date
from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


SYNC_SOURCES: tuple[str, ...] = ("trakt-movies", "trakt-shows", "yts", "eztv")


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="popsync", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=5000, alias="PORT")
    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./popsync.db", alias="DATABASE_URL"
    )

    trakt_api_url: HttpUrl = Field(
        default="https://api.trakt.tv", alias="TRAKT_API_URL"
    )
    trakt_client_id: str | None = Field(default=None, alias="TRAKT_CLIENT_ID")

    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    omdb_api_url: HttpUrl = Field(
        default="https://www.omdbapi.com", alias="OMDB_API_URL"
    )
    omdb_api_key: str | None = Field(default=None, alias="OMDB_API_KEY")
    fanart_api_url: HttpUrl = Field(
        default="https://webservice.fanart.tv/v3", alias="FANART_API_URL"
    )
    fanart_api_key: str | None = Field(default=None, alias="FANART_API_KEY")
    imdb_suggestion_url: HttpUrl = Field(
        default="https://v2.sg.media-imdb.com/suggestion",
        alias="IMDB_SUGGESTION_URL",
    )
    placeholder_image: str = Field(
        default="images/posterholder.png", alias="PLACEHOLDER_IMAGE"
    )

    yts_api_url: HttpUrl = Field(
        default="https://yts.mx/api/v2", alias="YTS_API_URL"
    )
    eztv_api_url: HttpUrl = Field(
        default="https://eztvx.to/api", alias="EZTV_API_URL"
    )

    request_timeout_seconds: float = Field(
        default=20.0, alias="REQUEST_TIMEOUT", gt=0
    )

    sync_parallelism: int = Field(default=1, alias="SYNC_PARALLELISM", ge=1, le=32)
    sync_page_limit: int = Field(default=100, alias="SYNC_PAGE_LIMIT", ge=1, le=100)
    sync_min_year: int = Field(default=1995, alias="SYNC_MIN_YEAR")
    sync_max_pages: int = Field(default=0, alias="SYNC_MAX_PAGES", ge=0)
    sync_max_failed_pages: int = Field(
        default=5, alias="SYNC_MAX_FAILED_PAGES", ge=1
    )
    sync_retry_attempts: int = Field(
        default=1, alias="SYNC_RETRY_ATTEMPTS", ge=0, le=10
    )
    sync_retry_backoff_seconds: float = Field(
        default=1.0, alias="SYNC_RETRY_BACKOFF", ge=0
    )
    sync_interval_seconds: int = Field(default=0, alias="SYNC_INTERVAL", ge=0)
    # Comma separated in the environment rather than JSON.
    sync_sources: Annotated[tuple[str, ...], NoDecode] = Field(
        default=SYNC_SOURCES, alias="SYNC_SOURCES"
    )

    # Per-upstream courtesy delays, tuned against each service's rate limits.
    trakt_delay_seconds: float = Field(default=0.5, alias="TRAKT_DELAY", ge=0)
    season_delay_seconds: float = Field(default=0.5, alias="SEASON_DELAY", ge=0)
    yts_delay_seconds: float = Field(default=1.5, alias="YTS_DELAY", ge=0)
    eztv_delay_seconds: float = Field(default=1.0, alias="EZTV_DELAY", ge=0)
    season_cap: int = Field(default=500, alias="SEASON_CAP", ge=1)

    movie_start_date: date = Field(
        default=date(2014, 9, 17), alias="MOVIE_START_DATE"
    )
    show_start_date: date = Field(default=date(2014, 9, 24), alias="SHOW_START_DATE")

    @field_validator("sync_sources", mode="before")
    @classmethod
    def _parse_sync_sources(cls, value: object) -> tuple[str, ...]:
        """Normalise source selections from environment values."""

        if value is None:
            return SYNC_SOURCES
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError("SYNC_SOURCES must be a string or iterable of strings")

        cleaned: list[str] = []
        for entry in raw_values:
            if not entry:
                continue
            slug = entry.replace("_", "-").replace(" ", "-").lower()
            if slug not in SYNC_SOURCES:
                raise ValueError(f"Unknown sync source configured: {entry}")
            if slug not in cleaned:
                cleaned.append(slug)
        if not cleaned:
            return SYNC_SOURCES
        return tuple(cleaned)

    def default_start_date(self, content_type: str) -> date:
        """Return the cursor fallback used when the catalog holds no records."""

        if content_type == "movie":
            return self.movie_start_date
        return self.show_start_date

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
