"""AlertLifecycleManager — turns rule matches into new alerts.

Creation requires evidence; continuation does not require re-confirmation.
A match creates an alert only when no alert of that type was triggered for
the site within the suppression window and none is currently active.  The
absence of a match never deactivates anything: alerts end by owner
acknowledgement or TTL expiry.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable
from uuid import UUID

from farm_alert.core.rules import RULE_CATALOG, RuleDefinition
from farm_alert.domain.alert import Alert, AlertDraft, RuleMatch
from farm_alert.domain.enums import RuleType
from farm_alert.domain.errors import ConflictError
from farm_alert.store.alert_store import AlertStore

logger = logging.getLogger(__name__)


class AlertLifecycleManager:
    """Dedup, creation and expiry of alerts over an AlertStore.

    Args:
        store: Where alerts live.
        suppression_window: Cool-down after an alert of a type is triggered.
        alert_ttl: Age after which alerts are force-deactivated.
        catalog: Rule texts used to render new alerts.
    """

    def __init__(
        self,
        store: AlertStore,
        suppression_window: timedelta = timedelta(hours=6),
        alert_ttl: timedelta = timedelta(days=7),
        catalog: dict[RuleType, RuleDefinition] | None = None,
    ) -> None:
        self._store = store
        self._suppression_window = suppression_window
        self._alert_ttl = alert_ttl
        self._catalog = catalog or RULE_CATALOG

    @property
    def store(self) -> AlertStore:
        return self._store

    async def reconcile(
        self,
        site_id: str,
        owner_id: str,
        matches: Iterable[RuleMatch],
        source_snapshot_id: UUID | None = None,
    ) -> list[Alert]:
        """Create alerts for matches that are neither suppressed nor active.

        Returns only the newly created alerts.
        """
        created: list[Alert] = []
        for match in matches:
            recent = await self._store.find_recently_triggered(
                site_id, match.rule_type, self._suppression_window,
            )
            if recent is not None:
                logger.debug(
                    "Suppressed %s for site %s (last triggered %s)",
                    match.rule_type.value, site_id, recent.triggered_at.isoformat(),
                )
                continue

            if await self._store.find_active(site_id, match.rule_type) is not None:
                logger.debug("Alert %s already active for site %s", match.rule_type.value, site_id)
                continue

            try:
                alert = await self._store.insert(
                    self._draft(site_id, owner_id, match, source_snapshot_id)
                )
            except ConflictError:
                logger.info(
                    "Concurrent %s alert for site %s already active, skipping",
                    match.rule_type.value, site_id,
                )
                continue

            logger.info(
                "New alert: %s (%s) for site %s",
                alert.rule_type.value, alert.severity.value, site_id,
            )
            created.append(alert)
        return created

    async def expire_stale(self) -> int:
        """Deactivate alerts older than the TTL.  Safe to call repeatedly."""
        return await self._store.deactivate_older_than(self._alert_ttl)

    def _draft(
        self,
        site_id: str,
        owner_id: str,
        match: RuleMatch,
        source_snapshot_id: UUID | None,
    ) -> AlertDraft:
        rule = self._catalog[match.rule_type]
        return AlertDraft(
            site_id=site_id,
            owner_id=owner_id,
            rule_type=match.rule_type,
            severity=match.severity,
            title=rule.title,
            description=rule.render_description(match),
            recommendation=rule.recommendation,
            affected_crops=list(rule.affected_crops),
            estimated_savings=rule.estimated_savings(match.severity),
            source_snapshot_id=source_snapshot_id,
        )
