"""Exact-match generation cache over the sqlite store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from zerocode.models import FileSet, Fingerprint, GenerationCacheEntry
from zerocode.store import Store

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GenerationCache:
    """Look up and record generated file sets by request fingerprint.

    A hit refreshes ``last_accessed_at`` and never touches the stored content.
    Entries are not evicted, and concurrent misses for the same fingerprint each
    run the generator; the store keeps the first write.
    """

    def __init__(self, store: Store, clock: Callable[[], datetime] = _now):
        self.store = store
        self.clock = clock

    def get_entry(self, fingerprint: Fingerprint) -> GenerationCacheEntry | None:
        row = self.store.find_one(fingerprint)
        if row is None:
            return None
        return GenerationCacheEntry(
            fingerprint=fingerprint,
            file_set=FileSet.model_validate_json(row["file_set_json"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            last_accessed_at=datetime.fromisoformat(row["last_accessed_at"]),
        )

    def get(self, fingerprint: Fingerprint) -> FileSet | None:
        entry = self.get_entry(fingerprint)
        if entry is None:
            logger.info("Cache miss", extra={"provider": fingerprint.provider, "cache": "miss"})
            return None
        self.store.update_one(fingerprint, self.clock())
        logger.info("Cache hit", extra={"provider": fingerprint.provider, "cache": "hit"})
        return entry.file_set

    def put(self, fingerprint: Fingerprint, file_set: FileSet) -> bool:
        now = self.clock()
        entry = GenerationCacheEntry(
            fingerprint=fingerprint,
            file_set=file_set,
            created_at=now,
            last_accessed_at=now,
        )
        inserted = self.store.insert_one(entry)
        if not inserted:
            logger.info("Cache entry already present, keeping first write", extra={"provider": fingerprint.provider})
        return inserted

    def get_or_create(self, fingerprint: Fingerprint, generate_fn: Callable[[], FileSet]) -> FileSet:
        """Return the cached file set, or run ``generate_fn`` and store its result.

        When another writer stored the same fingerprint first, the stored set is
        returned so every caller sees the same content.
        """
        cached = self.get(fingerprint)
        if cached is not None:
            return cached

        file_set = generate_fn()
        if self.put(fingerprint, file_set):
            return file_set
        stored = self.get_entry(fingerprint)
        return stored.file_set if stored is not None else file_set
