"""Bounded-age retention of fetched weather snapshots.

Every snapshot the scheduler fetches is recorded here and given an ID, so
alerts can point back at the reading that triggered them.  The cleanup
sweep purges records older than the retention period.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from farm_alert.domain.enums import RuleType
from farm_alert.domain.weather import Snapshot
from farm_alert.foundation.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class StoredSnapshot(BaseModel):
    snapshot_id: UUID
    site_id: str
    recorded_at: datetime
    snapshot: Snapshot
    matched_rules: list[RuleType] = Field(default_factory=list)

    model_config = {"frozen": True}


class InMemorySnapshotStore:
    """Async-safe snapshot history keyed by site."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = asyncio.Lock()
        self._records: dict[UUID, StoredSnapshot] = {}

    async def record(
        self,
        snapshot: Snapshot,
        matched_rules: list[RuleType] | None = None,
    ) -> StoredSnapshot:
        async with self._lock:
            stored = StoredSnapshot(
                snapshot_id=uuid4(),
                site_id=snapshot.site_id,
                recorded_at=self._clock(),
                snapshot=snapshot,
                matched_rules=matched_rules or [],
            )
            self._records[stored.snapshot_id] = stored
            return stored

    async def get(self, snapshot_id: UUID) -> StoredSnapshot | None:
        async with self._lock:
            return self._records.get(snapshot_id)

    async def latest(self, site_id: str) -> StoredSnapshot | None:
        async with self._lock:
            rows = [r for r in self._records.values() if r.site_id == site_id]
            return max(rows, key=lambda r: r.recorded_at) if rows else None

    async def purge_older_than(self, age: timedelta) -> int:
        async with self._lock:
            cutoff = self._clock() - age
            expired = [sid for sid, r in self._records.items() if r.recorded_at < cutoff]
            for sid in expired:
                del self._records[sid]
            if expired:
                logger.info("Purged %d snapshot(s) older than %s", len(expired), age)
            return len(expired)

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)
