"""Alert storage — protocol and in-memory implementation.

Design notes:
    - The active-alert invariant (at most one active alert per
      (site_id, rule_type)) is enforced HERE, not by callers.  insert()
      raises ConflictError when it would be violated, so overlapping
      writers can never double-create.
    - An asyncio.Lock guards all reads and mutations; every operation is
      atomic with respect to the event loop.
    - Alerts are frozen models.  Acknowledgement and expiry replace the
      stored record with an updated copy.
    - Alerts are never deleted, only deactivated.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Protocol
from uuid import UUID, uuid4

from farm_alert.domain.alert import Alert, AlertDraft
from farm_alert.domain.enums import RuleType
from farm_alert.domain.errors import ConflictError
from farm_alert.foundation.clock import Clock, utc_now

logger = logging.getLogger(__name__)

ActiveKey = tuple[str, RuleType]


class AlertStore(Protocol):
    """Durable keyed alert storage used by the lifecycle manager."""

    async def find_active(self, site_id: str, rule_type: RuleType) -> Alert | None:
        """Return the active alert for the pair, if any."""
        ...

    async def find_recently_triggered(
        self, site_id: str, rule_type: RuleType, within: timedelta,
    ) -> Alert | None:
        """Return the newest alert for the pair triggered within *within*, active or not."""
        ...

    async def insert(self, draft: AlertDraft) -> Alert:
        """Persist a new active alert.  Raises ConflictError if one is already active."""
        ...

    async def deactivate_older_than(self, ttl: timedelta) -> int:
        """Deactivate alerts triggered more than *ttl* ago.  Returns rows changed."""
        ...

    async def acknowledge(self, alert_id: UUID, owner_id: str) -> bool:
        """Acknowledge an alert on behalf of its owner."""
        ...

    async def get(self, alert_id: UUID) -> Alert | None:
        ...

    async def list_for_owner(
        self, owner_id: str, limit: int = 50, active_only: bool = False,
    ) -> list[Alert]:
        """Alerts for an owner, newest first."""
        ...


class InMemoryAlertStore:
    """Async-safe, in-process AlertStore.

    Args:
        clock: Source of "now" for triggered_at, acknowledged_at and TTL math.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = asyncio.Lock()
        self._alerts: dict[UUID, Alert] = {}
        self._active_index: dict[ActiveKey, UUID] = {}

    # ── Lookups ──────────────────────────────────────────────────────────

    async def find_active(self, site_id: str, rule_type: RuleType) -> Alert | None:
        async with self._lock:
            alert_id = self._active_index.get((site_id, rule_type))
            return self._alerts.get(alert_id) if alert_id else None

    async def find_recently_triggered(
        self, site_id: str, rule_type: RuleType, within: timedelta,
    ) -> Alert | None:
        async with self._lock:
            cutoff = self._clock() - within
            recent = [
                a for a in self._alerts.values()
                if a.site_id == site_id
                and a.rule_type == rule_type
                and a.triggered_at >= cutoff
            ]
            if not recent:
                return None
            return max(recent, key=lambda a: a.triggered_at)

    async def get(self, alert_id: UUID) -> Alert | None:
        async with self._lock:
            return self._alerts.get(alert_id)

    async def list_for_owner(
        self, owner_id: str, limit: int = 50, active_only: bool = False,
    ) -> list[Alert]:
        async with self._lock:
            rows = [
                a for a in self._alerts.values()
                if a.owner_id == owner_id and (a.is_active or not active_only)
            ]
            rows.sort(key=lambda a: a.triggered_at, reverse=True)
            return rows[:limit]

    # ── Mutations ────────────────────────────────────────────────────────

    async def insert(self, draft: AlertDraft) -> Alert:
        async with self._lock:
            key = (draft.site_id, draft.rule_type)
            if key in self._active_index:
                raise ConflictError(draft.site_id, draft.rule_type.value)

            alert = Alert(
                **draft.model_dump(),
                alert_id=uuid4(),
                is_active=True,
                triggered_at=self._clock(),
            )
            self._alerts[alert.alert_id] = alert
            self._active_index[key] = alert.alert_id
            logger.debug("Inserted alert %s", alert.summary())
            return alert

    async def deactivate_older_than(self, ttl: timedelta) -> int:
        async with self._lock:
            cutoff = self._clock() - ttl
            stale = [
                a for a in self._alerts.values()
                if a.is_active and a.triggered_at < cutoff
            ]
            for alert in stale:
                self._deactivate(alert)
            if stale:
                logger.info("Deactivated %d alert(s) older than %s", len(stale), ttl)
            return len(stale)

    async def acknowledge(self, alert_id: UUID, owner_id: str) -> bool:
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.owner_id != owner_id:
                return False
            if alert.acknowledged_at is not None:
                return False
            self._deactivate(alert, acknowledged_at=self._clock())
            return True

    # ── Internals ────────────────────────────────────────────────────────

    def _deactivate(self, alert: Alert, **extra) -> None:
        """Must be called while holding self._lock."""
        updated = alert.model_copy(update={"is_active": False, **extra})
        self._alerts[alert.alert_id] = updated
        key = (alert.site_id, alert.rule_type)
        if self._active_index.get(key) == alert.alert_id:
            del self._active_index[key]
