"""Incremental cursor derivation for change-feed sync runs.

The cursor resolves to a whole day. A run therefore re-reads every change
reported since midnight of the newest stored ``last_updated`` and reprocesses
items the previous run already handled that day. The upsert merge is
idempotent, so the overlap is harmless and keeps runs convergent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from ..catalog import CatalogStore
from ..models import ChangeNotification, ContentType

logger = logging.getLogger(__name__)

# Primary and secondary identifiers an item needs to be worth resolving.
REQUIRED_IDS: dict[str, tuple[str, str]] = {
    "movie": ("imdb", "tmdb"),
    "show": ("tvdb", "tmdb"),
}


@dataclass(slots=True)
class SyncCursor:
    content_type: ContentType
    start_date: date
    page: int = 1


class CursorTracker:
    """Derive where a run starts and detect when the feed is exhausted."""

    def __init__(
        self,
        store: CatalogStore,
        content_type: ContentType,
        *,
        default_start_date: date,
        min_year: int = 1995,
    ):
        self._store = store
        self._content_type = content_type
        self._default_start_date = default_start_date
        self._min_year = min_year
        self.cursor: SyncCursor | None = None

    @property
    def page(self) -> int:
        return self.cursor.page if self.cursor else 1

    async def next_start_date(self) -> date:
        """Return the day of the newest stored record, or the default start date."""

        latest = await self._store.find_max_updated(self._content_type)
        if latest is None:
            return self._default_start_date
        return latest.last_updated.date()

    async def open(self) -> SyncCursor:
        start_date = await self.next_start_date()
        self.cursor = SyncCursor(content_type=self._content_type, start_date=start_date)
        logger.info(
            "Syncing %s changes since %s", self._content_type, start_date.isoformat()
        )
        return self.cursor

    def advance(self) -> int:
        """Move to the next page whatever the outcome of the current one."""

        if self.cursor is None:
            raise RuntimeError("Cursor has not been opened")
        self.cursor.page += 1
        return self.cursor.page

    @staticmethod
    def is_page_terminal(items: Sequence[object]) -> bool:
        return len(items) == 0

    def accept(self, notification: ChangeNotification) -> bool:
        """Apply the scope filter to a change notification."""

        if notification.year is not None and notification.year <= self._min_year:
            return False
        primary, secondary = REQUIRED_IDS[notification.content_type]
        return notification.ids.has_any(primary, secondary)
