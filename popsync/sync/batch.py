"""Paged batch execution with per-item failure isolation."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any, Awaitable, Callable, Generic, Protocol, Sequence, TypeVar

from ..errors import IdentityUnresolvable, UpsertFailed
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ItemOutcome(enum.Enum):
    PROCESSED = "processed"
    # Filtered out before any upstream call was made.
    SKIPPED = "skipped"
    # Upstream was consulted but there was nothing worth storing.
    EMPTY = "empty"


class PageSource(Protocol):
    @property
    def page(self) -> int: ...

    def advance(self) -> int: ...

    def is_page_terminal(self, items: Sequence[Any]) -> bool: ...


class PageCounter:
    """Plain page counter for feeds without a date cursor."""

    def __init__(self, first_page: int = 1):
        self._page = first_page

    @property
    def page(self) -> int:
        return self._page

    def advance(self) -> int:
        self._page += 1
        return self._page

    @staticmethod
    def is_page_terminal(items: Sequence[Any]) -> bool:
        return len(items) == 0


@dataclass(slots=True)
class BatchReport:
    """Counters describing one sync run."""

    source: str
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: datetime | None = None
    pages: int = 0
    failed_pages: int = 0
    processed: int = 0
    skipped: int = 0
    empty: int = 0
    failed: int = 0
    stopped_reason: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "pages": self.pages,
            "failed_pages": self.failed_pages,
            "processed": self.processed,
            "skipped": self.skipped,
            "empty": self.empty,
            "failed": self.failed,
            "stopped_reason": self.stopped_reason,
        }


class BatchRunner(Generic[T]):
    """Drive a paged feed through an item pipeline.

    Pages are fetched in order through the retry policy. A page that keeps
    failing counts as an empty, non-terminal page: the run waits out the
    courtesy delay and moves on. Items of one page run under a parallelism
    ceiling and a failing item never cancels its siblings.
    """

    def __init__(
        self,
        *,
        parallelism: int = 1,
        retry: RetryPolicy | None = None,
        page_delay_seconds: float = 0.0,
        item_delay_seconds: float = 0.0,
        max_failed_pages: int = 5,
        max_pages: int = 0,
    ):
        self._parallelism = max(1, parallelism)
        self._retry = retry or RetryPolicy()
        self._page_delay_seconds = page_delay_seconds
        self._item_delay_seconds = item_delay_seconds
        self._max_failed_pages = max(1, max_failed_pages)
        self._max_pages = max_pages

    async def run(
        self,
        source: str,
        fetch_page: Callable[[int], Awaitable[Sequence[T]]],
        process_item: Callable[[T], Awaitable[ItemOutcome]],
        *,
        pages: PageSource | None = None,
        describe: Callable[[T], str] = str,
    ) -> BatchReport:
        pages = pages or PageCounter()
        report = BatchReport(source=source)
        consecutive_failures = 0

        while True:
            if self._max_pages and report.pages >= self._max_pages:
                report.stopped_reason = f"reached the limit of {self._max_pages} pages"
                break

            page = pages.page
            items, fetched = await self._retry.call_or_default(
                partial(fetch_page, page),
                default=[],
                delay_seconds=self._page_delay_seconds,
                description=f"{source}: fetching page {page}",
            )
            report.pages += 1

            if not fetched:
                report.failed_pages += 1
                consecutive_failures += 1
                if consecutive_failures >= self._max_failed_pages:
                    report.stopped_reason = (
                        f"{consecutive_failures} consecutive pages failed"
                    )
                    logger.error("%s: giving up after page %s, %s", source, page, report.stopped_reason)
                    break
                pages.advance()
                continue

            consecutive_failures = 0
            logger.info("%s: Found %s items on page %s", source, len(items), page)
            if pages.is_page_terminal(items):
                report.stopped_reason = "upstream exhausted"
                break

            await self._process_page(source, items, process_item, describe, report)
            if self._page_delay_seconds:
                await asyncio.sleep(self._page_delay_seconds)
            pages.advance()

        report.finished_at = datetime.utcnow()
        logger.info(
            "%s: run finished after %s pages (%s failed): %s processed, %s skipped, "
            "%s empty, %s failed",
            source,
            report.pages,
            report.failed_pages,
            report.processed,
            report.skipped,
            report.empty,
            report.failed,
        )
        return report

    async def _process_page(
        self,
        source: str,
        items: Sequence[T],
        process_item: Callable[[T], Awaitable[ItemOutcome]],
        describe: Callable[[T], str],
        report: BatchReport,
    ) -> None:
        semaphore = asyncio.Semaphore(self._parallelism)

        async def _guarded(item: T) -> None:
            async with semaphore:
                outcome: ItemOutcome | None = None
                try:
                    outcome = await process_item(item)
                except IdentityUnresolvable as exc:
                    outcome = ItemOutcome.SKIPPED
                    logger.info("%s: Skipping %s: %s", source, describe(item), exc)
                except UpsertFailed as exc:
                    report.failed += 1
                    logger.error("%s: Could not store %s: %s", source, exc.key, exc)
                except Exception as exc:
                    report.failed += 1
                    logger.warning(
                        "%s: Process %s failed: %s", source, describe(item), exc
                    )

                if outcome is ItemOutcome.PROCESSED:
                    report.processed += 1
                elif outcome is ItemOutcome.EMPTY:
                    report.empty += 1
                elif outcome is ItemOutcome.SKIPPED:
                    report.skipped += 1
                    return

                if self._item_delay_seconds:
                    await asyncio.sleep(self._item_delay_seconds)

        await asyncio.gather(*(_guarded(item) for item in items))
