"""Registry of push delivery targets per owner.

Targets are deactivated rather than deleted when the push service reports
them gone; re-registering the same endpoint reactivates it with new keys.
"""

from __future__ import annotations

import asyncio
import logging

from farm_alert.domain.delivery import DeliveryTarget

logger = logging.getLogger(__name__)


class InMemorySubscriptionStore:
    """Async-safe push-subscription registry keyed by endpoint."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._targets: dict[str, DeliveryTarget] = {}

    async def register(self, owner_id: str, endpoint: str, p256dh: str, auth: str) -> DeliveryTarget:
        async with self._lock:
            target = DeliveryTarget(
                owner_id=owner_id, endpoint=endpoint, p256dh=p256dh, auth=auth,
            )
            self._targets[endpoint] = target
            return target

    async def active_targets(self, owner_id: str) -> list[DeliveryTarget]:
        async with self._lock:
            return [
                t for t in self._targets.values()
                if t.owner_id == owner_id and t.is_active
            ]

    async def deactivate(self, endpoint: str) -> bool:
        """Prune a target.  Returns False if it was unknown or already inactive."""
        async with self._lock:
            target = self._targets.get(endpoint)
            if target is None or not target.is_active:
                return False
            self._targets[endpoint] = target.model_copy(update={"is_active": False})
            logger.info("Pruned delivery target for owner %s", target.owner_id)
            return True
