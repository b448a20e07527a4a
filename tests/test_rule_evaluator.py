"""Tests for the pure RuleEvaluator."""

import pytest

from farm_alert.core.rule_evaluator import RuleEvaluator, RuleThresholds
from farm_alert.domain.enums import RuleType, Severity
from farm_alert.domain.weather import ForecastPoint, Snapshot

from tests.test_weather import _forecast, _valid_snapshot


@pytest.fixture
def evaluator() -> RuleEvaluator:
    return RuleEvaluator()


def _snap(**kw) -> Snapshot:
    return Snapshot.model_validate(_valid_snapshot(**kw))


def _types(matches) -> list[RuleType]:
    return [m.rule_type for m in matches]


def _only(matches, rule_type: RuleType):
    found = [m for m in matches if m.rule_type == rule_type]
    assert len(found) == 1, f"expected exactly one {rule_type.value} match, got {_types(matches)}"
    return found[0]


class TestMildWeather:
    def test_nothing_fires(self, evaluator: RuleEvaluator) -> None:
        assert evaluator.evaluate(_snap()) == []

    def test_deterministic(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(temperature=-3.0, wind_speed=30.0)
        assert evaluator.evaluate(snap) == evaluator.evaluate(snap)


class TestFrost:
    @pytest.mark.parametrize(
        "temp, severity",
        [(-3.0, Severity.CRITICAL), (-1.2, Severity.HIGH), (1.0, Severity.MEDIUM)],
    )
    def test_severity_bands(self, evaluator: RuleEvaluator, temp: float, severity: Severity) -> None:
        match = _only(evaluator.evaluate(_snap(temperature=temp)), RuleType.FROST)
        assert match.severity == severity
        assert match.evidence["min_temperature"] == temp

    def test_trigger_is_strict(self, evaluator: RuleEvaluator) -> None:
        assert RuleType.FROST not in _types(evaluator.evaluate(_snap(temperature=2.0)))

    def test_exact_band_edges(self, evaluator: RuleEvaluator) -> None:
        at_zero = _only(evaluator.evaluate(_snap(temperature=0.0)), RuleType.FROST)
        at_minus_two = _only(evaluator.evaluate(_snap(temperature=-2.0)), RuleType.FROST)
        assert at_zero.severity == Severity.MEDIUM
        assert at_minus_two.severity == Severity.HIGH

    def test_min_includes_forecast(self, evaluator: RuleEvaluator) -> None:
        points = _forecast(8)
        points[4]["temperature"] = -3.5
        match = _only(evaluator.evaluate(_snap(forecast=points)), RuleType.FROST)
        assert match.severity == Severity.CRITICAL
        assert match.evidence["min_temperature"] == -3.5

    def test_points_beyond_window_ignored(self, evaluator: RuleEvaluator) -> None:
        points = _forecast(10)
        points[9]["temperature"] = -5.0
        assert RuleType.FROST not in _types(evaluator.evaluate(_snap(forecast=points)))


class TestDrought:
    def test_medium_when_humidity_between_bands(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(temperature=28.0, humidity=35.0, forecast=_forecast(humidity=35.0))
        matches = evaluator.evaluate(snap)
        assert _types(matches) == [RuleType.DROUGHT]
        assert matches[0].severity == Severity.MEDIUM
        assert matches[0].evidence["avg_humidity"] == pytest.approx(35.0)

    def test_high_when_very_dry(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(temperature=30.0, forecast=_forecast(humidity=25.0))
        assert _only(evaluator.evaluate(snap), RuleType.DROUGHT).severity == Severity.HIGH

    def test_requires_hot_current_temperature(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(temperature=25.0, forecast=_forecast(humidity=20.0))
        assert RuleType.DROUGHT not in _types(evaluator.evaluate(snap))

    def test_uses_forecast_average_not_current(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(temperature=30.0, humidity=10.0, forecast=_forecast(humidity=60.0))
        assert RuleType.DROUGHT not in _types(evaluator.evaluate(snap))

    def test_empty_forecast_falls_back_to_current(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(temperature=28.0, humidity=35.0, forecast=[])
        assert RuleType.DROUGHT in _types(evaluator.evaluate(snap))


class TestFungalDisease:
    def test_warm_and_humid_matches(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(forecast=_forecast(temperature=20.0, humidity=90.0))
        match = _only(evaluator.evaluate(snap), RuleType.FUNGAL_DISEASE)
        assert match.severity == Severity.MEDIUM
        assert match.evidence["avg_temperature"] == pytest.approx(20.0)

    @pytest.mark.parametrize("temp", [15.0, 25.0])
    def test_band_is_inclusive(self, evaluator: RuleEvaluator, temp: float) -> None:
        snap = _snap(forecast=_forecast(temperature=temp, humidity=90.0))
        assert RuleType.FUNGAL_DISEASE in _types(evaluator.evaluate(snap))

    def test_humidity_must_exceed_threshold(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(forecast=_forecast(temperature=20.0, humidity=85.0))
        assert RuleType.FUNGAL_DISEASE not in _types(evaluator.evaluate(snap))


class TestExcessiveRain:
    def test_medium(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(forecast=_forecast(precipitation=3.0))
        match = _only(evaluator.evaluate(snap), RuleType.EXCESSIVE_RAIN)
        assert match.severity == Severity.MEDIUM
        assert match.evidence["total_precipitation"] == pytest.approx(24.0)

    def test_high(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(forecast=_forecast(precipitation=7.0))
        assert _only(evaluator.evaluate(snap), RuleType.EXCESSIVE_RAIN).severity == Severity.HIGH

    def test_exactly_threshold_does_not_fire(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(forecast=_forecast(precipitation=2.5))
        assert RuleType.EXCESSIVE_RAIN not in _types(evaluator.evaluate(snap))


class TestStrongWind:
    def test_current_wind_counts(self, evaluator: RuleEvaluator) -> None:
        match = _only(evaluator.evaluate(_snap(wind_speed=16.0)), RuleType.STRONG_WIND)
        assert match.severity == Severity.MEDIUM

    def test_forecast_gust_high(self, evaluator: RuleEvaluator) -> None:
        points = _forecast(8)
        points[2]["wind_speed"] = 27.0
        match = _only(evaluator.evaluate(_snap(forecast=points)), RuleType.STRONG_WIND)
        assert match.severity == Severity.HIGH
        assert match.evidence["max_wind_speed"] == 27.0


class TestHeatWave:
    def test_critical_above_threshold(self, evaluator: RuleEvaluator) -> None:
        match = _only(evaluator.evaluate(_snap(temperature=36.5)), RuleType.HEAT_WAVE)
        assert match.severity == Severity.CRITICAL

    def test_single_point_check(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(temperature=30.0, forecast=_forecast(temperature=40.0))
        assert RuleType.HEAT_WAVE not in _types(evaluator.evaluate(snap))


class TestConfiguration:
    def test_multiple_rules_match_independently(self, evaluator: RuleEvaluator) -> None:
        snap = _snap(temperature=38.0, forecast=_forecast(humidity=20.0))
        assert _types(evaluator.evaluate(snap)) == [RuleType.DROUGHT, RuleType.HEAT_WAVE]

    def test_injected_thresholds(self) -> None:
        evaluator = RuleEvaluator(thresholds=RuleThresholds(frost_trigger=5.0))
        assert evaluator.thresholds.frost_trigger == 5.0
        assert evaluator.thresholds.heat_wave == RuleThresholds().heat_wave
        assert RuleType.FROST in _types(evaluator.evaluate(_snap(temperature=4.0)))

    def test_custom_window_size(self) -> None:
        points = _forecast(8)
        points[3]["temperature"] = -4.0
        evaluator = RuleEvaluator(window_points=2)
        assert RuleType.FROST not in _types(evaluator.evaluate(_snap(forecast=points)))

    def test_explicit_forecast_overrides_snapshot(self, evaluator: RuleEvaluator) -> None:
        snap = _snap()
        cold = [ForecastPoint.model_validate(p) for p in _forecast(2, temperature=-1.0)]
        assert RuleType.FROST in _types(evaluator.evaluate(snap, cold))

    def test_window_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RuleEvaluator(window_points=0)
