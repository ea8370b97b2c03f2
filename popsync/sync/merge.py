"""Torrent slot merge policy.

Everything here is synchronous and free of I/O so it can run inside the upsert
critical section without yielding to the event loop.
"""

from __future__ import annotations

from ..models import TorrentMap, TorrentSlot


def resolve(existing: TorrentSlot | None, candidate: TorrentSlot | None) -> bool:
    """Return ``True`` when ``candidate`` should take the slot held by ``existing``.

    * no existing slot: any candidate wins;
    * no candidate: the existing slot is kept;
    * otherwise the higher seed count wins. On a tie the candidate only wins when it
      points at the same release (a refresh), so an established release is never
      swapped for an alternate of identical popularity.
    """

    if candidate is None:
        return False
    if existing is None:
        return True
    if candidate.seed != existing.seed:
        return candidate.seed > existing.seed
    return candidate.url == existing.url


def merge_torrents(existing: TorrentMap | None, candidate: TorrentMap | None) -> TorrentMap:
    """Combine two torrent maps slot by slot using :func:`resolve`."""

    existing = existing or {}
    candidate = candidate or {}
    merged: TorrentMap = {}
    for language in sorted(set(existing) | set(candidate)):
        old_slots = existing.get(language) or {}
        new_slots = candidate.get(language) or {}
        slots: dict[str, TorrentSlot] = {}
        for quality in sorted(set(old_slots) | set(new_slots)):
            old_slot = old_slots.get(quality)
            new_slot = new_slots.get(quality)
            chosen = new_slot if resolve(old_slot, new_slot) else old_slot
            if chosen is not None:
                slots[quality] = chosen
        merged[language] = slots
    return merged
