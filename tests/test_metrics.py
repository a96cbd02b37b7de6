# ==============================================
# Tests for Metrics Engine
# ==============================================
#
# KPI ratios, threshold grading (boundaries inclusive),
# and the month-over-month comparison.
# ==============================================

import pytest
from hypothesis import given, settings, strategies as st

from fleet_analytics.analysis import (
    MetricThresholds,
    MetricsEngine,
    Status,
    growth,
    month_over_month,
    rate_variance,
    utilization,
)
from fleet_analytics.models import PeriodRow


@pytest.fixture
def engine():
    return MetricsEngine()


class TestRatios:

    def test_utilization(self):
        assert utilization(10, 6) == pytest.approx(0.6)
        assert utilization(0, 0) is None
        assert utilization(None, 3) is None

    def test_utilization_clamped(self):
        """Inconsistent upstream counts never report above 100%."""
        assert utilization(4, 5) == 1.0
        assert utilization(4, -1) == 0.0

    @given(st.integers(min_value=1, max_value=10 ** 6), st.integers(min_value=-10, max_value=10 ** 6))
    @settings(max_examples=200, deadline=None)
    def test_utilization_in_range(self, total, leased):
        assert 0.0 <= utilization(total, leased) <= 1.0

    def test_rate_variance(self):
        assert rate_variance(900, 1000) == pytest.approx(-0.10)
        assert rate_variance(1100, 1000) == pytest.approx(0.10)
        assert rate_variance(900, None) is None
        assert rate_variance(900, 0) is None
        assert rate_variance(None, 1000) is None

    def test_growth(self):
        assert growth(110, 100) == pytest.approx(0.10)
        assert growth(110, 0) is None


class TestGrading:

    @pytest.mark.parametrize("value, expected", [
        (0.95, Status.GOOD),
        (0.80, Status.GOOD),
        (0.79, Status.WARNING),
        (0.60, Status.WARNING),
        (6 / 10, Status.WARNING),
        (0.59, Status.CRITICAL),
        (None, Status.NEUTRAL),
    ])
    def test_utilization_status(self, engine, value, expected):
        assert engine.utilization_status(value) is expected

    def test_rate_variance_boundary_is_warning(self, engine):
        """Billed 900 against a 1000 card rate is exactly -10%: warning, not critical."""
        assert engine.rate_variance_status(rate_variance(900, 1000)) is Status.WARNING
        assert engine.rate_variance_status(rate_variance(1000, 1000)) is Status.GOOD
        assert engine.rate_variance_status(rate_variance(899, 1000)) is Status.CRITICAL

    @pytest.mark.parametrize("months, expected", [
        (0, Status.GOOD),
        (6, Status.GOOD),
        (6.5, Status.WARNING),
        (12, Status.WARNING),
        (12.1, Status.CRITICAL),
        (None, Status.NEUTRAL),
    ])
    def test_idle_status_lower_is_better(self, engine, months, expected):
        assert engine.idle_status(months) is expected

    def test_growth_status(self, engine):
        assert engine.growth_status(0.05) is Status.GOOD
        assert engine.growth_status(0.0) is Status.WARNING
        assert engine.growth_status(-0.01) is Status.CRITICAL
        assert engine.growth_status(None) is Status.NEUTRAL

    def test_utilization_with_status(self, engine):
        assert engine.utilization_with_status(10, 9) == {"utilization": 0.9, "status": "good"}
        assert engine.utilization_with_status(0, 0) == {"utilization": None, "status": "neutral"}

    def test_custom_thresholds(self):
        engine = MetricsEngine(MetricThresholds(utilization_good=0.9, utilization_warning=0.5))
        assert engine.utilization_status(0.85) is Status.WARNING


class TestThresholdValidation:

    def test_defaults(self):
        thresholds = MetricThresholds()
        assert thresholds.utilization_good == 0.80
        assert thresholds.utilization_warning == 0.60
        assert thresholds.to_dict()["idle_warning_months"] == 12
        assert thresholds.to_dict()["rate_variance_severe"] == -0.20

    @pytest.mark.parametrize("kwargs", [
        {"utilization_good": 0.5, "utilization_warning": 0.6},
        {"rate_variance_good": -0.2, "rate_variance_warning": -0.1},
        {"rate_variance_warning": -0.25},
        {"growth_good": -0.01},
        {"idle_healthy_months": 13},
    ])
    def test_misordered_thresholds_rejected(self, kwargs):
        with pytest.raises(ValueError):
            MetricThresholds(**kwargs)


class TestMonthOverMonth:

    def test_latest_two_periods(self):
        rows = [
            PeriodRow("2026-03", "Dallas", 100, 70),
            PeriodRow("2026-05", "Dallas", 100, 80),
            PeriodRow("2026-04", "Dallas", 100, 75),
        ]
        delta = month_over_month(rows, value=lambda r: utilization(r.total, r.leased))

        assert delta.current_period == "2026-05"
        assert delta.previous_period == "2026-04"
        assert delta.change == pytest.approx(0.05)
        assert delta.change_pct == pytest.approx(0.05 / 0.75)

    def test_single_period_has_no_comparison(self):
        rows = [PeriodRow("2026-05", "Dallas", 100, 80)]
        assert month_over_month(rows, value=lambda r: float(r.total)) is None

    def test_empty_series(self):
        assert month_over_month([], value=lambda r: float(r.total)) is None

    def test_gap_is_compared_as_returned(self):
        """A missing month between the two latest rows is not filled in."""
        rows = [PeriodRow("2026-05", "Dallas", 120, 90), PeriodRow("2026-02", "Dallas", 100, 90)]
        delta = month_over_month(rows, value=lambda r: float(r.total))

        assert delta.previous_period == "2026-02"
        assert delta.change == 20.0
        assert delta.to_dict()["change_pct"] == pytest.approx(0.2)

    def test_missing_value(self):
        rows = [PeriodRow("2026-05", "Dallas", 0, 0), PeriodRow("2026-04", "Dallas", 10, 5)]
        assert month_over_month(rows, value=lambda r: utilization(r.total, r.leased)) is None
