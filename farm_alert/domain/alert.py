"""Alert domain models.

An Alert is the durable, stateful record of one risk notification for a
site.  The store is the only owner of alert state: models here are frozen
and the store replaces records when acknowledging or expiring them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from farm_alert.domain.enums import RuleType, Severity


class RuleMatch(BaseModel):
    """One rule that fired for a snapshot, with the numbers that made it fire."""

    rule_type: RuleType
    severity: Severity
    evidence: dict[str, float] = Field(default_factory=dict)

    model_config = {"frozen": True}


class AlertDraft(BaseModel):
    """Everything needed to create an alert, before the store assigns identity."""

    site_id: str
    owner_id: str
    rule_type: RuleType
    severity: Severity
    title: str
    description: str
    recommendation: str
    affected_crops: list[str] = Field(default_factory=list)
    estimated_savings: float = Field(0.0, ge=0.0)
    source_snapshot_id: Optional[UUID] = None

    model_config = {"frozen": True}


class Alert(AlertDraft):
    """A stored alert."""

    alert_id: UUID
    is_active: bool = True
    triggered_at: datetime
    acknowledged_at: Optional[datetime] = None

    def summary(self) -> dict:
        """Compact dict suitable for logging and notification payloads."""
        return {
            "alert_id": str(self.alert_id),
            "site_id": self.site_id,
            "rule_type": self.rule_type.value,
            "severity": self.severity.value,
            "estimated_savings": self.estimated_savings,
            "is_active": self.is_active,
            "triggered_at": self.triggered_at.isoformat(),
        }
