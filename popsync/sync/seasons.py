"""Season-by-season episode discovery for shows."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial

from ..errors import NotFoundError, UpstreamError
from ..models import EpisodeRecord
from ..services.base import MetadataService
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_SEASON_CAP = 500


@dataclass(slots=True)
class SeasonWalk:
    episodes: list[EpisodeRecord] = field(default_factory=list)
    num_seasons: int = 0


class SeasonWalker:
    """Fetch seasons 1, 2, ... until the metadata service runs out.

    The first season that is empty or not found marks the end of the series and
    becomes the show's season count. ``season_cap`` bounds the walk even when the
    upstream never stops answering.
    """

    def __init__(
        self,
        metadata: MetadataService,
        *,
        season_cap: int = DEFAULT_SEASON_CAP,
        delay_seconds: float = 0.5,
        retry: RetryPolicy | None = None,
    ):
        self._metadata = metadata
        self._season_cap = season_cap
        self._delay_seconds = delay_seconds
        self._retry = retry or RetryPolicy()

    async def walk(self, show_id: int | str, *, title: str | None = None) -> SeasonWalk:
        result = SeasonWalk()
        label = title or show_id
        for season in range(1, self._season_cap + 1):
            try:
                payload = await self._retry.call(
                    partial(self._metadata.season_episodes, show_id, season),
                    description=f"season {season} of show {label}",
                )
            except NotFoundError:
                break
            except UpstreamError as exc:
                logger.warning(
                    "Stopping season walk for show %s at season %s: %s", label, season, exc
                )
                break

            if not payload:
                break

            episodes = self._parse_episodes(payload, season)
            logger.info("Found %s episodes for show %s season %s", len(episodes), label, season)
            result.episodes.extend(episodes)
            result.num_seasons = season
            if self._delay_seconds:
                await asyncio.sleep(self._delay_seconds)
        else:
            logger.warning(
                "Season walk for show %s hit the cap of %s seasons", label, self._season_cap
            )
        return result

    @staticmethod
    def _parse_episodes(payload: list[dict], season: int) -> list[EpisodeRecord]:
        episodes: list[EpisodeRecord] = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            entry = {"season": season, **entry}
            try:
                episodes.append(EpisodeRecord.from_trakt_payload(entry))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed episode payload %s", entry)
        return episodes
