"""Configuration settings behaviour tests."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from popsync.config import SYNC_SOURCES, Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.sync_sources == SYNC_SOURCES
    assert settings.season_cap == 500
    assert settings.sync_max_failed_pages == 5
    assert settings.default_start_date("movie") == date(2014, 9, 17)
    assert settings.default_start_date("show") == date(2014, 9, 24)


def test_sync_sources_are_normalised() -> None:
    settings = Settings(_env_file=None, SYNC_SOURCES="EZTV, trakt_movies,eztv")

    assert settings.sync_sources == ("eztv", "trakt-movies")


def test_blank_sync_sources_fall_back_to_all() -> None:
    settings = Settings(_env_file=None, SYNC_SOURCES="")

    assert settings.sync_sources == SYNC_SOURCES


def test_unknown_sync_source_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, SYNC_SOURCES="yts,kat")


def test_parallelism_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, SYNC_PARALLELISM=0)
