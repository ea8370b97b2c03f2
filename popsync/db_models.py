"""SQLAlchemy ORM models backing the content catalog."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class CatalogEntry(Base):
    """A movie or show keyed by its identity key."""

    __tablename__ = "content_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content_type: Mapped[str] = mapped_column(String(16), index=True)
    imdb_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tmdb_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tvdb_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trakt_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    slug: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str] = mapped_column(String(512))
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    synopsis: Mapped[str | None] = mapped_column(Text, nullable=True)
    runtime: Mapped[int | None] = mapped_column(Integer, nullable=True)
    country: Mapped[str | None] = mapped_column(String(16), nullable=True)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    rating: Mapped[dict[str, Any]] = mapped_column(JSON)
    images: Mapped[dict[str, Any]] = mapped_column(JSON)
    genres: Mapped[list[str]] = mapped_column(JSON)
    released: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    trailer: Mapped[str | None] = mapped_column(String(512), nullable=True)
    certification: Mapped[str | None] = mapped_column(String(32), nullable=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime, index=True)
    torrents: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    network: Mapped[str | None] = mapped_column(String(255), nullable=True)
    air_day: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    air_time: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    num_seasons: Mapped[int] = mapped_column(Integer, default=0)
    aired_episodes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    latest_episode: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    episodes: Mapped[list["EpisodeEntry"]] = relationship(
        back_populates="show",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class EpisodeEntry(Base):
    """An episode row owned by a show entry."""

    __tablename__ = "episodes"
    __table_args__ = (
        UniqueConstraint("show_id", "season", "episode", name="uq_episode_show"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    show_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("content_records.id", ondelete="CASCADE")
    )
    season: Mapped[int] = mapped_column(Integer)
    episode: Mapped[int] = mapped_column(Integer)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    first_aired: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    date_based: Mapped[bool] = mapped_column(Boolean, default=False)
    watched: Mapped[bool] = mapped_column(Boolean, default=False)
    tvdb_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ids: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    torrents: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    show: Mapped[CatalogEntry] = relationship(back_populates="episodes")
