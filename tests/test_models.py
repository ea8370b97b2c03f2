"""Model parsing and identity tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from popsync.errors import IdentityUnresolvable
from popsync.models import (
    ChangeNotification,
    ContentRecord,
    EpisodeRecord,
    ExternalIds,
    ImageSet,
    Rating,
    derive_identity_key,
)


def test_identity_key_prefers_imdb_then_prefixed_fallbacks() -> None:
    assert derive_identity_key(ExternalIds(imdb="tt0111161", tmdb=278, trakt=1)) == "tt0111161"
    assert derive_identity_key(ExternalIds(tmdb=278, trakt=1)) == "tmdb-278"
    assert derive_identity_key(ExternalIds(trakt=1)) == "trakt-1"


def test_identity_key_is_stable_for_the_same_ids() -> None:
    ids = {"imdb": "", "tmdb": 99, "slug": "some-show"}

    first = derive_identity_key(ExternalIds.model_validate(ids))
    second = derive_identity_key(ExternalIds.model_validate(ids))

    assert first == second == "tmdb-99"


def test_identity_key_requires_an_identifier() -> None:
    with pytest.raises(IdentityUnresolvable):
        derive_identity_key(ExternalIds(slug="only-a-slug"))


def test_rating_scales_to_percentage() -> None:
    rating = Rating.from_trakt(7.66, "120", watching=4)

    assert rating.percentage == 77
    assert rating.votes == 120
    assert rating.watching == 4
    assert (rating.loved, rating.hated) == (100, 100)
    assert Rating.from_trakt(None, None).percentage == 0


def test_movie_record_from_summary() -> None:
    detail = {
        "title": "The Shawshank Redemption",
        "year": 1994,
        "ids": {"trakt": 234, "slug": "the-shawshank-redemption-1994", "imdb": "tt0111161", "tmdb": 278},
        "overview": "Two imprisoned men bond.",
        "runtime": 142,
        "released": "1994-09-23",
        "rating": 8.8,
        "votes": 50000,
        "genres": [],
        "updated_at": "2024-03-01T10:00:00.000Z",
    }

    record = ContentRecord.from_trakt_payload(
        detail, content_type="movie", images=ImageSet.placeholder(), watching=2
    )

    assert record.id == record.imdb_id == "tt0111161"
    assert record.genres == ["unknown"]
    assert record.rating.percentage == 88
    assert record.released == 780278400
    assert record.last_updated == datetime(2024, 3, 1, 10, 0)
    assert record.episodes == []


def test_show_record_from_summary() -> None:
    episodes = [EpisodeRecord(season=1, episode=1, title="Pilot")]
    detail = {
        "title": "Example Show",
        "ids": {"trakt": 7, "tvdb": 321, "tmdb": 55},
        "airs": {"day": "Monday", "time": "21:00"},
        "status": "returning series",
        "network": "HBO",
        "updated_at": "2024-01-01T00:00:00Z",
    }

    record = ContentRecord.from_trakt_payload(
        detail,
        content_type="show",
        images=ImageSet.placeholder(),
        episodes=episodes,
        num_seasons=1,
    )

    assert record.id == "tmdb-55"
    assert record.imdb_id is None
    assert record.air_time == "Monday 21:00"
    assert record.num_seasons == 1
    assert record.latest_episode == 1704067200
    assert record.episodes[0].key == (1, 1)


def test_change_notification_reads_nested_media() -> None:
    notification = ChangeNotification.from_trakt_payload(
        {
            "updated_at": "2024-05-02T12:00:00.000Z",
            "movie": {"title": "Heat", "year": 1995, "ids": {"trakt": 1, "imdb": "tt0113277"}},
        },
        content_type="movie",
    )

    assert notification.title == "Heat"
    assert notification.year == 1995
    assert notification.ids.imdb == "tt0113277"
    assert "Heat" in notification.describe()
