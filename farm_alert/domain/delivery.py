"""Push delivery models."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class DeliveryTarget(BaseModel):
    """A browser push subscription registered by an owner."""

    owner_id: str
    endpoint: str = Field(..., min_length=1)
    p256dh: str
    auth: str
    is_active: bool = True

    model_config = {"frozen": True}

    def subscription_info(self) -> dict:
        """The shape pywebpush expects."""
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


class DispatchResult(BaseModel):
    """Outcome of delivering one alert to all of an owner's targets."""

    alert_id: UUID
    owner_id: str
    targets: int = 0
    delivered: int = 0
    pruned: int = 0
    failed: int = 0

    @property
    def attempted(self) -> bool:
        return self.targets > 0
