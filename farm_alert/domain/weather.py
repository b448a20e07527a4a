"""Canonical weather models — the contract between snapshot sources and rules.

A Snapshot is a normalized current reading for one site plus an ordered
window of forecast points.  It is validated at the boundary and never
mutated afterwards, so the rule evaluator never has to re-check ranges.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from farm_alert.foundation.clock import ensure_utc

MAX_FORECAST_POINTS = 40


# ── Site ─────────────────────────────────────────────────────────────────────

class Site(BaseModel):
    """A monitored farm, as listed by the site directory."""

    site_id: str = Field(..., min_length=1, max_length=128)
    owner_id: str = Field(..., min_length=1, max_length=128)
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    name: Optional[str] = None

    model_config = {"frozen": True, "allow_inf_nan": False}


# ── Readings ─────────────────────────────────────────────────────────────────

class ForecastPoint(BaseModel):
    """One forecast step (typically 3-hourly)."""

    timestamp: datetime
    temperature: float = Field(..., description="Air temperature in °C")
    humidity: float = Field(..., ge=0.0, le=100.0, description="Relative humidity in %")
    wind_speed: float = Field(0.0, ge=0.0, description="Wind speed in m/s")
    precipitation: float = Field(0.0, ge=0.0, description="Precipitation in mm over the period")

    model_config = {"frozen": True, "allow_inf_nan": False}

    @field_validator("timestamp")
    @classmethod
    def timestamp_must_be_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Snapshot(BaseModel):
    """Current conditions for one site plus its near-term forecast."""

    site_id: str = Field(..., min_length=1, max_length=128)
    observed_at: datetime
    temperature: float = Field(..., description="Air temperature in °C")
    humidity: float = Field(..., ge=0.0, le=100.0)
    wind_speed: float = Field(0.0, ge=0.0)
    precipitation: float = Field(0.0, ge=0.0)
    forecast: list[ForecastPoint] = Field(
        default_factory=list,
        max_length=MAX_FORECAST_POINTS,
        description="Forecast points in chronological order",
    )

    model_config = {"frozen": True, "allow_inf_nan": False}

    @field_validator("observed_at")
    @classmethod
    def observed_at_must_be_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def forecast_must_be_ordered(self) -> "Snapshot":
        stamps = [p.timestamp for p in self.forecast]
        if any(later < earlier for earlier, later in zip(stamps, stamps[1:])):
            raise ValueError("forecast points must be in chronological order")
        return self
