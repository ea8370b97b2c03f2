"""Sync pipelines that reconcile upstream data into the catalog."""

from .batch import BatchReport, BatchRunner, ItemOutcome
from .service import SyncService, UnknownSource, build_sync_service
from .upsert import UpsertCoordinator

__all__ = [
    "BatchReport",
    "BatchRunner",
    "ItemOutcome",
    "SyncService",
    "UnknownSource",
    "UpsertCoordinator",
    "build_sync_service",
]
