"""RuleEvaluator — deterministic threshold rules over weather snapshots.

Design principles:
    1. Pure function: accepts a Snapshot, returns a list of RuleMatch.
    2. No side effects, no state, no I/O.
    3. Every breakpoint lives in RuleThresholds, never in a literal.
    4. Rules are independent: any number may match the same snapshot.

Aggregates:
    The forecast window is the first ``window_points`` forecast points.
    - min/max aggregates cover current reading + window.
    - avg/sum aggregates cover the window only.
    An empty window falls back to the current reading as a single point.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from farm_alert.domain.alert import RuleMatch
from farm_alert.domain.enums import RuleType, Severity
from farm_alert.domain.weather import ForecastPoint, Snapshot


@dataclass(frozen=True)
class RuleThresholds:
    """Breakpoints for every rule.  Defaults are the agronomic standard set."""

    # Frost: min temperature across current + window
    frost_trigger: float = 2.0
    frost_high: float = 0.0
    frost_critical: float = -2.0

    # Drought: window humidity average and current temperature
    drought_humidity: float = 40.0
    drought_humidity_high: float = 30.0
    drought_temperature: float = 25.0

    # Fungal disease: inclusive temperature band, humidity floor
    fungal_temperature_min: float = 15.0
    fungal_temperature_max: float = 25.0
    fungal_humidity: float = 85.0

    # Excessive rain: window precipitation total (mm)
    rain_total: float = 20.0
    rain_high: float = 50.0

    # Strong wind: max wind speed across current + window (m/s)
    wind_speed: float = 15.0
    wind_high: float = 25.0

    # Heat wave: current temperature only
    heat_wave: float = 35.0


class RuleEvaluator:
    """Stateless evaluator for the fixed rule set."""

    def __init__(
        self,
        thresholds: RuleThresholds | None = None,
        window_points: int = 8,
    ) -> None:
        if window_points < 1:
            raise ValueError("window_points must be at least 1")
        self._t = thresholds or RuleThresholds()
        self._window_points = window_points

    @property
    def thresholds(self) -> RuleThresholds:
        return self._t

    # ── Public API ───────────────────────────────────────────────────────

    def evaluate(
        self,
        snapshot: Snapshot,
        forecast: Sequence[ForecastPoint] | None = None,
    ) -> list[RuleMatch]:
        """Evaluate every rule against *snapshot* and its forecast window.

        Args:
            snapshot: The current reading.
            forecast: Forecast points to use instead of ``snapshot.forecast``.

        Returns:
            Matches in catalog order.  Empty when nothing fires.
        """
        points = list(snapshot.forecast if forecast is None else forecast)
        window = points[: self._window_points]

        candidates = (
            self._frost(snapshot, window),
            self._drought(snapshot, window),
            self._fungal_disease(snapshot, window),
            self._excessive_rain(snapshot, window),
            self._strong_wind(snapshot, window),
            self._heat_wave(snapshot),
        )
        return [m for m in candidates if m is not None]

    # ── Rules ────────────────────────────────────────────────────────────

    def _frost(self, snap: Snapshot, window: list[ForecastPoint]) -> RuleMatch | None:
        t = self._t
        min_temp = min([snap.temperature, *(p.temperature for p in window)])
        if min_temp >= t.frost_trigger:
            return None
        if min_temp < t.frost_critical:
            severity = Severity.CRITICAL
        elif min_temp < t.frost_high:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM
        return RuleMatch(
            rule_type=RuleType.FROST,
            severity=severity,
            evidence={"min_temperature": min_temp},
        )

    def _drought(self, snap: Snapshot, window: list[ForecastPoint]) -> RuleMatch | None:
        t = self._t
        avg_humidity = _mean(window, "humidity", snap.humidity)
        if not (avg_humidity < t.drought_humidity and snap.temperature > t.drought_temperature):
            return None
        severity = Severity.HIGH if avg_humidity < t.drought_humidity_high else Severity.MEDIUM
        return RuleMatch(
            rule_type=RuleType.DROUGHT,
            severity=severity,
            evidence={
                "avg_humidity": avg_humidity,
                "current_temperature": snap.temperature,
            },
        )

    def _fungal_disease(self, snap: Snapshot, window: list[ForecastPoint]) -> RuleMatch | None:
        t = self._t
        avg_temp = _mean(window, "temperature", snap.temperature)
        avg_humidity = _mean(window, "humidity", snap.humidity)
        in_band = t.fungal_temperature_min <= avg_temp <= t.fungal_temperature_max
        if not (in_band and avg_humidity > t.fungal_humidity):
            return None
        return RuleMatch(
            rule_type=RuleType.FUNGAL_DISEASE,
            severity=Severity.MEDIUM,
            evidence={"avg_temperature": avg_temp, "avg_humidity": avg_humidity},
        )

    def _excessive_rain(self, snap: Snapshot, window: list[ForecastPoint]) -> RuleMatch | None:
        t = self._t
        if window:
            total = sum(p.precipitation for p in window)
        else:
            total = snap.precipitation
        if total <= t.rain_total:
            return None
        severity = Severity.HIGH if total > t.rain_high else Severity.MEDIUM
        return RuleMatch(
            rule_type=RuleType.EXCESSIVE_RAIN,
            severity=severity,
            evidence={"total_precipitation": total},
        )

    def _strong_wind(self, snap: Snapshot, window: list[ForecastPoint]) -> RuleMatch | None:
        t = self._t
        max_wind = max([snap.wind_speed, *(p.wind_speed for p in window)])
        if max_wind <= t.wind_speed:
            return None
        severity = Severity.HIGH if max_wind > t.wind_high else Severity.MEDIUM
        return RuleMatch(
            rule_type=RuleType.STRONG_WIND,
            severity=severity,
            evidence={"max_wind_speed": max_wind},
        )

    def _heat_wave(self, snap: Snapshot) -> RuleMatch | None:
        if snap.temperature <= self._t.heat_wave:
            return None
        return RuleMatch(
            rule_type=RuleType.HEAT_WAVE,
            severity=Severity.CRITICAL,
            evidence={"current_temperature": snap.temperature},
        )


# ── Helpers ──────────────────────────────────────────────────────────────────

def _mean(window: list[ForecastPoint], attr: str, fallback: float) -> float:
    if not window:
        return fallback
    return sum(getattr(p, attr) for p in window) / len(window)
