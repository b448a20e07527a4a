"""NotificationDispatcher — best-effort push for newly created alerts.

Failure policy:
    - A target that is gone is pruned; delivery to the owner's other
      targets continues.
    - Any other delivery failure is logged and dropped, no retry.
    - dispatch() never raises: the alert already exists and stays
      visible in-app whatever happens here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from farm_alert.core.rules import RULE_CATALOG, RuleDefinition
from farm_alert.domain.alert import Alert
from farm_alert.domain.delivery import DeliveryTarget, DispatchResult
from farm_alert.domain.enums import RuleType, Severity
from farm_alert.domain.errors import DeliveryError, DeliveryTargetInvalid
from farm_alert.foundation.clock import Clock, utc_now
from farm_alert.notify.transport import PushTransport
from farm_alert.store.subscription_store import InMemorySubscriptionStore

logger = logging.getLogger(__name__)

SEVERITY_EMOJI: dict[Severity, str] = {
    Severity.LOW: "🟢",
    Severity.MEDIUM: "🟡",
    Severity.HIGH: "🟠",
    Severity.CRITICAL: "🔴",
}

# Delivery outcomes for one target
_DELIVERED = "delivered"
_PRUNED = "pruned"
_FAILED = "failed"


class NotificationDispatcher:
    """Fans one alert out to every active push target of its owner."""

    def __init__(
        self,
        subscriptions: InMemorySubscriptionStore,
        transport: PushTransport,
        catalog: dict[RuleType, RuleDefinition] | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._subscriptions = subscriptions
        self._transport = transport
        self._catalog = catalog or RULE_CATALOG
        self._clock = clock

    async def dispatch(self, owner_id: str, alert: Alert) -> DispatchResult:
        result = DispatchResult(alert_id=alert.alert_id, owner_id=owner_id)
        try:
            targets = await self._subscriptions.active_targets(owner_id)
        except Exception:
            logger.exception("Could not load push targets for owner %s", owner_id)
            return result

        if not targets:
            logger.info("No active push targets for owner %s", owner_id)
            return result

        payload = self.build_payload(alert)
        outcomes = await asyncio.gather(
            *(self._deliver(target, payload) for target in targets)
        )

        result.targets = len(targets)
        result.delivered = outcomes.count(_DELIVERED)
        result.pruned = outcomes.count(_PRUNED)
        result.failed = outcomes.count(_FAILED)
        logger.info(
            "Alert %s pushed to owner %s: %d delivered, %d pruned, %d failed",
            alert.alert_id, owner_id, result.delivered, result.pruned, result.failed,
        )
        return result

    def build_payload(self, alert: Alert) -> dict[str, Any]:
        rule = self._catalog.get(alert.rule_type)
        emoji = rule.emoji if rule else "⚠️"
        return {
            "title": f"{emoji} {alert.title}",
            "body": f"{SEVERITY_EMOJI.get(alert.severity, '⚠️')} {alert.description}",
            "icon": "/icon-192x192.png",
            "badge": "/badge-72x72.png",
            "data": {
                "url": "/dashboard",
                "timestamp": self._clock().isoformat(),
                "type": "weather_alert",
                "alert_id": str(alert.alert_id),
                "site_id": alert.site_id,
                "rule_type": alert.rule_type.value,
                "severity": alert.severity.value,
            },
        }

    async def _deliver(self, target: DeliveryTarget, payload: dict[str, Any]) -> str:
        try:
            await self._transport.send(target, payload)
            return _DELIVERED
        except DeliveryTargetInvalid as exc:
            logger.info("Push target gone (%s), pruning %s", exc.status_code, target.endpoint)
            try:
                await self._subscriptions.deactivate(target.endpoint)
            except Exception:
                logger.exception("Failed to prune push target %s", target.endpoint)
            return _PRUNED
        except DeliveryError as exc:
            logger.warning("Push delivery failed: %s", exc)
            return _FAILED
        except Exception:
            logger.exception("Unexpected push failure for %s", target.endpoint)
            return _FAILED
