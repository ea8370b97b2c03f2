"""Artwork lookups across the image provider fallback chain."""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from ..config import Settings
from ..errors import NotFoundError, TransientUpstreamError, UpstreamError
from ..models import ContentType, ExternalIds, ImageSet
from .base import ImageProvider

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"

FANART_KEYS: dict[str, dict[str, tuple[str, ...]]] = {
    "movie": {
        "poster": ("movieposter",),
        "banner": ("moviebanner",),
        "fanart": ("moviebackground", "hdmovieclearart"),
    },
    "show": {
        "poster": ("tvposter",),
        "banner": ("tvbanner",),
        "fanart": ("showbackground", "hdclearart"),
    },
}


async def _get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    provider: str,
    params: dict[str, Any] | None = None,
) -> Any:
    try:
        response = await client.get(url, params=params)
    except httpx.HTTPError as exc:
        raise TransientUpstreamError(
            f"{provider} request failed ({exc.__class__.__name__})"
        ) from exc
    if response.status_code == 404:
        raise NotFoundError(f"{provider} has no images for {url}")
    if response.status_code == 429 or response.status_code >= 500:
        raise TransientUpstreamError(f"{provider} returned {response.status_code}")
    if response.status_code >= 400:
        raise UpstreamError(f"{provider} rejected {url} with {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise TransientUpstreamError(f"{provider} returned a non-JSON body") from exc


class ImdbSuggestionImages:
    """Poster from the IMDb search-suggestion endpoint."""

    name = "imdb"

    def __init__(self, http_client: httpx.AsyncClient, base_url: str):
        self._client = http_client
        self._base_url = base_url.rstrip("/")

    async def fetch_images(self, ids: ExternalIds, content_type: ContentType) -> ImageSet:
        if not ids.imdb:
            raise NotFoundError("No IMDb id to look up")
        body = await _get_json(
            self._client, f"{self._base_url}/t/{ids.imdb}.json", provider=self.name
        )
        entries = body.get("d") if isinstance(body, dict) else None
        if entries:
            image = entries[0].get("i") if isinstance(entries[0], dict) else None
            if isinstance(image, dict) and image.get("imageUrl"):
                return ImageSet.single(str(image["imageUrl"]))
        raise NotFoundError(f"Not found imdb image for {ids.imdb}")


class TMDBImages:
    """Posters and backdrops from The Movie Database."""

    name = "tmdb"

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, api_key: str | None):
        self._client = http_client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key

    async def fetch_images(self, ids: ExternalIds, content_type: ContentType) -> ImageSet:
        if not (self._api_key and ids.tmdb):
            raise NotFoundError("TMDB lookup needs an API key and a TMDB id")
        segment = "movie" if content_type == "movie" else "tv"
        data = await _get_json(
            self._client,
            f"{self._base_url}/{segment}/{ids.tmdb}/images",
            provider=self.name,
            params={"api_key": self._api_key},
        )
        posters = data.get("posters") if isinstance(data, dict) else None
        if not (isinstance(posters, list) and posters and isinstance(posters[0], dict)):
            raise NotFoundError(f"Invalid tmdb posters for /{segment}/{ids.tmdb}")
        backdrops = data.get("backdrops")
        if not (isinstance(backdrops, list) and backdrops and isinstance(backdrops[0], dict)):
            backdrops = posters

        poster = self._build_image_url(posters[0].get("file_path"))
        backdrop = self._build_image_url(backdrops[0].get("file_path"))
        if not (poster or backdrop):
            raise NotFoundError(f"Invalid tmdb posters and backdrop for /{segment}/{ids.tmdb}")
        return ImageSet(
            banner=poster or backdrop,
            fanart=backdrop or poster,
            poster=poster or backdrop,
        )

    @staticmethod
    def _build_image_url(path: object) -> str:
        if not isinstance(path, str) or not path:
            return ""
        if path.startswith("http"):
            return path
        return f"{POSTER_BASE_URL}{path}"


class OMDbImages:
    """Single poster from the OMDb API."""

    name = "omdb"

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, api_key: str | None):
        self._client = http_client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key

    async def fetch_images(self, ids: ExternalIds, content_type: ContentType) -> ImageSet:
        if not (self._api_key and ids.imdb):
            raise NotFoundError("OMDb lookup needs an API key and an IMDb id")
        data = await _get_json(
            self._client,
            f"{self._base_url}/",
            provider=self.name,
            params={
                "apikey": self._api_key,
                "i": ids.imdb,
                "type": "movie" if content_type == "movie" else "series",
            },
        )
        poster = data.get("Poster") if isinstance(data, dict) else None
        if not poster or poster == "N/A":
            raise NotFoundError(f"Invalid omdb posters for {ids.imdb}")
        return ImageSet.single(str(poster))


class FanartImages:
    """Artwork from fanart.tv (TMDB id for movies, TVDB id for shows)."""

    name = "fanart"

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, api_key: str | None):
        self._client = http_client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key

    async def fetch_images(self, ids: ExternalIds, content_type: ContentType) -> ImageSet:
        lookup_id = ids.tmdb if content_type == "movie" else ids.tvdb
        if not (self._api_key and lookup_id):
            raise NotFoundError("Fanart lookup needs an API key and an id")
        segment = "movies" if content_type == "movie" else "tv"
        data = await _get_json(
            self._client,
            f"{self._base_url}/{segment}/{lookup_id}",
            provider=self.name,
            params={"api_key": self._api_key},
        )
        if not isinstance(data, dict):
            raise NotFoundError(f"Invalid fanart payload for /{segment}/{lookup_id}")

        keys = FANART_KEYS[content_type]
        poster = self._first_url(data, keys["poster"])
        if not poster:
            raise NotFoundError(f"Invalid fanart posters for /{segment}/{lookup_id}")
        return ImageSet(
            poster=poster,
            banner=self._first_url(data, keys["banner"]) or poster,
            fanart=self._first_url(data, keys["fanart"]) or poster,
        )

    @staticmethod
    def _first_url(data: dict[str, Any], keys: Iterable[str]) -> str | None:
        for key in keys:
            entries = data.get(key)
            if not (isinstance(entries, list) and entries and isinstance(entries[0], dict)):
                continue
            if entries[0].get("url"):
                return str(entries[0]["url"])
        return None


class ImageResolver:
    """Walk the provider chain and fall back to placeholders."""

    def __init__(self, providers: Iterable[ImageProvider], *, placeholder: str):
        self._providers = tuple(providers)
        self._placeholder = placeholder

    async def resolve(self, ids: ExternalIds, content_type: ContentType) -> ImageSet:
        for provider in self._providers:
            try:
                return await provider.fetch_images(ids, content_type)
            except NotFoundError as exc:
                logger.debug("Image provider %s had nothing: %s", provider.name, exc)
            except UpstreamError as exc:
                logger.warning("Get image from %s failed: %s", provider.name, exc)
        logger.warning(
            "Images: could not find images for %s, using placeholders",
            ids.imdb or ids.tmdb or ids.tvdb or ids.trakt,
        )
        return ImageSet.placeholder(self._placeholder)


def build_image_resolver(settings: Settings, http_client: httpx.AsyncClient) -> ImageResolver:
    """Assemble the production chain: IMDb, TMDB, OMDb, then fanart.tv."""

    providers: list[ImageProvider] = [
        ImdbSuggestionImages(http_client, str(settings.imdb_suggestion_url)),
        TMDBImages(http_client, str(settings.tmdb_api_url), settings.tmdb_api_key),
        OMDbImages(http_client, str(settings.omdb_api_url), settings.omdb_api_key),
        FanartImages(http_client, str(settings.fanart_api_url), settings.fanart_api_key),
    ]
    return ImageResolver(providers, placeholder=settings.placeholder_image)
