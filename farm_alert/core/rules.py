"""Static catalog of rule texts and agronomic metadata.

The evaluator decides *whether* a rule fires and how severe it is; this
catalog decides what the resulting alert says, which crops it concerns and
the estimated loss it helps avoid.  Description templates are
``str.format`` templates filled from the match evidence.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from farm_alert.domain.alert import RuleMatch
from farm_alert.domain.enums import RuleType, Severity


@dataclass(frozen=True)
class RuleDefinition:
    rule_type: RuleType
    title: str
    description_template: str
    recommendation: str
    emoji: str = "⚠️"
    affected_crops: tuple[str, ...] = ()
    # Estimated loss avoided per alert, by severity; missing severities count as 0
    savings: dict[Severity, float] = field(default_factory=dict)

    def render_description(self, match: RuleMatch) -> str:
        return self.description_template.format(**match.evidence)

    def estimated_savings(self, severity: Severity) -> float:
        return self.savings.get(severity, 0.0)


RULE_CATALOG: dict[RuleType, RuleDefinition] = {
    RuleType.FROST: RuleDefinition(
        rule_type=RuleType.FROST,
        title="Frost risk",
        description_template=(
            "Frost risk detected. Minimum expected temperature: {min_temperature:.1f}°C"
        ),
        recommendation=(
            "Protect frost-sensitive crops. Use frost covers or heating "
            "systems where available."
        ),
        emoji="❄️",
        affected_crops=("vines", "vegetables", "fruit"),
        savings={Severity.CRITICAL: 500.0, Severity.HIGH: 300.0, Severity.MEDIUM: 150.0},
    ),
    RuleType.DROUGHT: RuleDefinition(
        rule_type=RuleType.DROUGHT,
        title="Drought risk",
        description_template=(
            "Dry conditions detected. Average humidity {avg_humidity:.0f}% "
            "with current temperature {current_temperature:.1f}°C"
        ),
        recommendation=(
            "Increase irrigation if possible. Monitor crop condition and "
            "adjust water supply."
        ),
        emoji="🌵",
        affected_crops=("cereals", "vegetables", "fruit trees"),
        savings={Severity.HIGH: 400.0, Severity.MEDIUM: 200.0},
    ),
    RuleType.FUNGAL_DISEASE: RuleDefinition(
        rule_type=RuleType.FUNGAL_DISEASE,
        title="Fungal disease risk",
        description_template=(
            "Conditions favour fungal disease. Average temperature "
            "{avg_temperature:.1f}°C, average humidity {avg_humidity:.0f}%"
        ),
        recommendation=(
            "Inspect crops for early signs of fungal disease. Consider a "
            "preventive treatment if needed."
        ),
        emoji="🦠",
        affected_crops=("potatoes", "tomatoes", "vines"),
        savings={Severity.MEDIUM: 250.0},
    ),
    RuleType.EXCESSIVE_RAIN: RuleDefinition(
        rule_type=RuleType.EXCESSIVE_RAIN,
        title="Excessive rain",
        description_template=(
            "Heavy rain expected: {total_precipitation:.1f} mm over the forecast window"
        ),
        recommendation=(
            "Check field drainage. Watch for flooding and erosion."
        ),
        emoji="🌧️",
        affected_crops=("cereals", "vegetables"),
        savings={Severity.HIGH: 350.0, Severity.MEDIUM: 200.0},
    ),
    RuleType.STRONG_WIND: RuleDefinition(
        rule_type=RuleType.STRONG_WIND,
        title="Strong wind",
        description_template="Strong wind expected: {max_wind_speed:.1f} m/s",
        recommendation=(
            "Secure equipment and structures. Avoid work at height. Watch "
            "wind-sensitive crops."
        ),
        emoji="💨",
        affected_crops=("maize", "sunflower", "fruit trees"),
        savings={Severity.HIGH: 300.0, Severity.MEDIUM: 150.0},
    ),
    RuleType.HEAT_WAVE: RuleDefinition(
        rule_type=RuleType.HEAT_WAVE,
        title="Heat wave",
        description_template="Very high temperature: {current_temperature:.1f}°C",
        recommendation=(
            "Increase irrigation to prevent water stress. Protect livestock "
            "from excessive heat."
        ),
        emoji="🔥",
        affected_crops=("cereals", "vegetables", "livestock"),
        savings={Severity.CRITICAL: 400.0},
    ),
}
