"""Entry point for the FastAPI-powered sync service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException

from .catalog import CatalogStore
from .config import settings
from .database import Database
from .services.images import build_image_resolver
from .services.trakt import TraktClient
from .sync.service import SyncService, UnknownSource, build_sync_service

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


def _timeout() -> httpx.Timeout:
    return httpx.Timeout(settings.request_timeout_seconds, connect=10.0)


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    trakt_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(base_url=str(settings.trakt_api_url), timeout=_timeout())
    )
    images_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=_timeout(), follow_redirects=True)
    )
    yts_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(base_url=str(settings.yts_api_url), timeout=_timeout())
    )
    eztv_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(base_url=str(settings.eztv_api_url), timeout=_timeout())
    )
    database = Database(settings.database_url)
    await database.create_all()

    store = CatalogStore(database.session_factory)
    sync_service = build_sync_service(
        settings,
        store=store,
        trakt=TraktClient(settings, trakt_client),
        images=build_image_resolver(settings, images_client),
        yts_client=yts_client,
        eztv_client=eztv_client,
    )

    app.state.sync_service = sync_service
    app.state.database = database
    await sync_service.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await sync_service.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Reconciles Trakt metadata and torrent indexes into a catalog",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_routes(fastapi_app)
    return fastapi_app


def get_sync_service(app: FastAPI) -> SyncService:
    service = getattr(app.state, "sync_service", None)
    if not isinstance(service, SyncService):
        raise RuntimeError("Sync service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/sync")
    async def sync_status() -> dict[str, Any]:
        service = get_sync_service(fastapi_app)
        reports = service.reports
        return {
            "sources": [
                {
                    "source": source,
                    "running": service.is_running(source),
                    "last_report": reports[source].as_dict() if source in reports else None,
                }
                for source in service.sources
            ]
        }

    @fastapi_app.post("/sync/{source}", status_code=202)
    async def trigger_sync(source: str) -> dict[str, str]:
        service = get_sync_service(fastapi_app)
        try:
            started = service.trigger(source)
        except UnknownSource as exc:
            raise HTTPException(status_code=404, detail=f"Unknown sync source: {source}") from exc
        if not started:
            raise HTTPException(status_code=409, detail=f"{source} sync already running")
        logger.info("Triggered %s sync", source)
        return {"source": source, "status": "started"}


app = create_app()
