"""Controlled enumerations for the farm-alert domain.

Every categorical field in the domain MUST reference an enum defined here.
"""

from __future__ import annotations

from enum import Enum


class RuleType(str, Enum):
    """The fixed set of agronomic weather risks."""

    FROST = "frost"
    DROUGHT = "drought"
    FUNGAL_DISEASE = "fungal_disease"
    EXCESSIVE_RAIN = "excessive_rain"
    STRONG_WIND = "strong_wind"
    HEAT_WAVE = "heat_wave"


class Severity(str, Enum):
    """Alert severity levels, lowest first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
