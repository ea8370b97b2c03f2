"""Exception hierarchy shared by the sync engine and upstream clients."""

from __future__ import annotations


class PopsyncError(Exception):
    """Base class for every error raised by popsync."""


class UpstreamError(PopsyncError):
    """An upstream service could not satisfy a request."""


class TransientUpstreamError(UpstreamError):
    """Timeouts, transport failures, throttling, 5xx or malformed bodies."""


class NotFoundError(UpstreamError):
    """The upstream has no data for the request.

    Callers treat this as a control-flow signal (next image provider, end of a
    season walk) rather than a failure.
    """


class IdentityUnresolvable(PopsyncError):
    """A candidate carries no external identifier usable as an identity key."""


class UpsertFailed(PopsyncError):
    """The catalog store rejected an insert or replace."""

    def __init__(self, key: str, reason: object | None = None):
        self.key = key
        self.reason = reason
        message = f"Upsert failed for {key}"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)


class CatalogUnavailable(PopsyncError):
    """The catalog store cannot be reached when a run starts."""
