"""Incremental cursor tests."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from popsync.models import ChangeNotification, ContentRecord, ExternalIds
from popsync.sync.cursor import CursorTracker


class FakeStore:
    def __init__(self, latest: ContentRecord | None = None):
        self.latest = latest
        self.requested: list[str] = []

    async def find_max_updated(self, content_type: str) -> ContentRecord | None:
        self.requested.append(content_type)
        return self.latest


def _notification(content_type: str = "movie", year: int | None = 2010, **ids) -> ChangeNotification:
    return ChangeNotification(content_type=content_type, year=year, ids=ExternalIds(**ids))


@pytest.mark.anyio("asyncio")
async def test_empty_catalog_starts_from_default_date() -> None:
    store = FakeStore()
    tracker = CursorTracker(store, "movie", default_start_date=date(2014, 9, 17))

    cursor = await tracker.open()

    assert cursor.start_date == date(2014, 9, 17)
    assert cursor.page == 1
    assert store.requested == ["movie"]


@pytest.mark.anyio("asyncio")
async def test_cursor_truncates_latest_update_to_its_day() -> None:
    latest = ContentRecord(
        id="tt1",
        content_type="show",
        title="Latest",
        last_updated=datetime(2024, 3, 5, 23, 59, 59),
    )
    tracker = CursorTracker(FakeStore(latest), "show", default_start_date=date(2014, 9, 24))

    cursor = await tracker.open()

    assert cursor.start_date == date(2024, 3, 5)


@pytest.mark.anyio("asyncio")
async def test_advance_moves_one_page_at_a_time() -> None:
    tracker = CursorTracker(FakeStore(), "movie", default_start_date=date(2014, 9, 17))
    with pytest.raises(RuntimeError):
        tracker.advance()

    await tracker.open()
    assert tracker.advance() == 2
    assert tracker.advance() == 3
    assert tracker.page == 3


def test_only_empty_pages_are_terminal() -> None:
    assert CursorTracker.is_page_terminal([]) is True
    assert CursorTracker.is_page_terminal([object()]) is False


def test_accept_filters_old_titles_and_missing_ids() -> None:
    tracker = CursorTracker(FakeStore(), "movie", default_start_date=date(2014, 9, 17))

    assert tracker.accept(_notification(imdb="tt1")) is True
    assert tracker.accept(_notification(tmdb=5)) is True
    assert tracker.accept(_notification(year=1995, imdb="tt1")) is False
    assert tracker.accept(_notification(year=None, imdb="tt1")) is True
    assert tracker.accept(_notification(trakt=1)) is False


def test_accept_uses_show_identifiers() -> None:
    tracker = CursorTracker(FakeStore(), "show", default_start_date=date(2014, 9, 24))

    assert tracker.accept(_notification("show", tvdb=10)) is True
    assert tracker.accept(_notification("show", tmdb=10)) is True
    assert tracker.accept(_notification("show", imdb="tt1")) is False
