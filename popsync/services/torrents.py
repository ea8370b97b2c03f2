"""Paged scrapers for the YTS and EZTV torrent indexes."""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import quote

import httpx

from ..errors import TransientUpstreamError, UpstreamError
from ..models import ContentType
from ..utils import coerce_int, human_size, parse_quality
from .base import IndexPage, RawTorrentItem

logger = logging.getLogger(__name__)

TRACKERS: tuple[str, ...] = (
    "udp://glotorrents.pw:6969/announce",
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://torrent.gresille.org:80/announce",
    "udp://tracker.openbittorrent.com:80",
    "udp://tracker.coppersurfer.tk:6969",
    "udp://tracker.leechers-paradise.org:6969",
    "udp://p4p.arenabg.ch:1337",
    "udp://tracker.internetwarriors.net:1337",
)

ENGLISH_RE = re.compile(r"^(en|english)$", re.IGNORECASE)
DEFAULT_EPISODE_QUALITY = "480p"


def build_magnet(info_hash: str, name: str | None = None) -> str:
    """Return a magnet URI for ``info_hash`` announcing to the shared trackers."""

    magnet = f"magnet:?xt=urn:btih:{info_hash}"
    if name:
        magnet += f"&dn={quote(name)}"
    return magnet + "".join(f"&tr={tracker}" for tracker in TRACKERS)


async def _get_json(
    client: httpx.AsyncClient, path: str, *, provider: str, params: dict[str, Any]
) -> Any:
    try:
        response = await client.get(path, params=params)
    except httpx.HTTPError as exc:
        raise TransientUpstreamError(
            f"{provider}: {exc.__class__.__name__} with link '{path}'"
        ) from exc
    if response.status_code == 429 or response.status_code >= 500:
        raise TransientUpstreamError(f"{provider}: status {response.status_code} on '{path}'")
    if response.status_code >= 400:
        raise UpstreamError(f"{provider}: could not find data on '{path}'")
    try:
        return response.json()
    except ValueError as exc:
        raise TransientUpstreamError(f"{provider}: parse json failed on '{path}'") from exc


class YTSScraper:
    """Movie torrents from the YTS list API, oldest additions first."""

    name = "YTS"
    content_type: ContentType = "movie"
    page_size = 50

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def list_page(self, page: int) -> IndexPage:
        body = await _get_json(
            self._client,
            "/list_movies.json",
            provider=self.name,
            params={
                "limit": self.page_size,
                "page": page,
                "sort_by": "date_added",
                "order_by": "asc",
            },
        )
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise TransientUpstreamError(f"{self.name}: unexpected payload on page {page}")
        movies = data.get("movies") or []
        items: list[RawTorrentItem] = []
        for movie in movies:
            items.extend(self._format_movie(movie))
        return IndexPage(items=items, raw_count=len(movies))

    def _format_movie(self, movie: Any) -> list[RawTorrentItem]:
        if not isinstance(movie, dict):
            return []
        imdb_id = movie.get("imdb_code")
        language = str(movie.get("language") or "")
        if not (imdb_id and movie.get("torrents") and ENGLISH_RE.match(language)):
            return []

        items: list[RawTorrentItem] = []
        for torrent in movie["torrents"]:
            quality = torrent.get("quality")
            info_hash = torrent.get("hash")
            if not quality or quality == "3D" or not info_hash:
                continue
            items.append(
                RawTorrentItem(
                    imdb_id=str(imdb_id),
                    title=str(movie.get("title_long") or movie.get("title") or imdb_id),
                    quality=str(quality),
                    url=build_magnet(info_hash),
                    provider=self.name,
                    seed=coerce_int(torrent.get("seeds")) or 0,
                    peer=coerce_int(torrent.get("peers")) or 0,
                    size=coerce_int(torrent.get("size_bytes")),
                    filesize=torrent.get("size"),
                )
            )
        return items


class EZTVScraper:
    """Episode torrents from the EZTV JSON API, newest first."""

    name = "EZTV"
    content_type: ContentType = "show"
    page_size = 100

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def list_page(self, page: int) -> IndexPage:
        body = await _get_json(
            self._client,
            "/get-torrents",
            provider=self.name,
            params={"limit": self.page_size, "page": page},
        )
        if not isinstance(body, dict):
            raise TransientUpstreamError(f"{self.name}: unexpected payload on page {page}")
        torrents = body.get("torrents") or []
        items: list[RawTorrentItem] = []
        for torrent in torrents:
            item = self._format_torrent(torrent)
            if item is not None:
                items.append(item)
        return IndexPage(items=items, raw_count=len(torrents))

    def _format_torrent(self, torrent: Any) -> RawTorrentItem | None:
        if not isinstance(torrent, dict):
            return None
        imdb_number = coerce_int(torrent.get("imdb_id"))
        season = coerce_int(torrent.get("season"))
        episode = coerce_int(torrent.get("episode"))
        url = torrent.get("magnet_url")
        if not (imdb_number and season is not None and episode is not None and url):
            return None

        title = str(torrent.get("title") or torrent.get("filename") or "")
        size = coerce_int(torrent.get("size_bytes"))
        return RawTorrentItem(
            imdb_id=f"tt{imdb_number:07d}",
            title=title,
            quality=parse_quality(title) or DEFAULT_EPISODE_QUALITY,
            url=str(url),
            provider=self.name,
            seed=coerce_int(torrent.get("seeds")) or 0,
            peer=coerce_int(torrent.get("peers")) or 0,
            size=size,
            filesize=human_size(size),
            season=season,
            episode=episode,
        )
