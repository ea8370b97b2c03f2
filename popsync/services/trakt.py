"""Utilities for communicating with the Trakt API."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from ..config import Settings
from ..errors import NotFoundError, TransientUpstreamError, UpstreamError
from ..models import ContentType

logger = logging.getLogger(__name__)


def _kind(content_type: ContentType) -> str:
    return "movies" if content_type == "movie" else "shows"


class TraktClient:
    """Thin wrapper around the Trakt HTTP API.

    Transport failures, throttling, 5xx responses and unparsable bodies raise
    :class:`TransientUpstreamError`; a 404 raises :class:`NotFoundError`. Retrying
    is left to the caller's retry policy.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "trakt-api-version": "2",
            "User-Agent": f"{self._settings.app_name} (popsync)",
        }
        if self._settings.trakt_client_id:
            headers["trakt-api-key"] = self._settings.trakt_client_id
        return headers

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.get(path, headers=self._headers(), params=params)
        except httpx.HTTPError as exc:
            raise TransientUpstreamError(
                f"Trakt request {path} failed ({exc.__class__.__name__})"
            ) from exc

        if response.status_code == 404:
            raise NotFoundError(f"Trakt has no data for {path}")
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientUpstreamError(
                f"Trakt returned {response.status_code} for {path}"
            )
        if response.status_code >= 400:
            raise UpstreamError(
                f"Trakt rejected {path} with {response.status_code}: {response.text}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise TransientUpstreamError(f"Unexpected non-JSON Trakt response for {path}") from exc

    async def updates(
        self,
        content_type: ContentType,
        start_date: date,
        *,
        page: int,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Fetch one page of the movie/show change feed since ``start_date``."""

        path = f"/{_kind(content_type)}/updates/{start_date.isoformat()}"
        data = await self._get(
            path, params={"page": page, "limit": max(1, min(int(limit), 100))}
        )
        if not isinstance(data, list):
            raise TransientUpstreamError(f"Unexpected Trakt response structure for {path}")
        return [entry for entry in data if isinstance(entry, dict)]

    async def summary(self, content_type: ContentType, item_id: int | str) -> dict[str, Any]:
        """Return the ``extended=full`` summary of a movie or show."""

        path = f"/{_kind(content_type)}/{item_id}"
        data = await self._get(path, params={"extended": "full"})
        if not isinstance(data, dict):
            raise TransientUpstreamError(f"Unexpected Trakt response structure for {path}")
        return data

    async def watcher_count(
        self, content_type: ContentType, item_id: int | str
    ) -> int | None:
        """Return how many users are watching the item right now."""

        try:
            data = await self._get(f"/{_kind(content_type)}/{item_id}/watching")
        except NotFoundError:
            return None
        if data is None:
            return None
        if not isinstance(data, list):
            logger.debug("Unexpected Trakt watching payload for %s %s", content_type, item_id)
            return None
        return len(data)

    async def season_episodes(self, show_id: int | str, season: int) -> list[dict[str, Any]]:
        """Return the episodes of one season, raising ``NotFoundError`` past the last."""

        path = f"/shows/{show_id}/seasons/{season}"
        data = await self._get(path, params={"extended": "full"})
        if not isinstance(data, list):
            raise TransientUpstreamError(f"Unexpected Trakt response structure for {path}")
        return [entry for entry in data if isinstance(entry, dict)]
