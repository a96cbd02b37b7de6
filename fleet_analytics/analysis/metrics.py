# ==============================================
# Metrics Engine
# ==============================================
#
# PURPOSE:
#   Derive the KPI ratios from aggregate counts and grade them
#   against configurable thresholds.
#
# ENUMS:
# ------
# - Status(str, Enum): good, warning, critical, neutral
#     neutral = no value to grade (e.g. utilization of an empty group).
#
# CLASSES:
# --------
# - MetricThresholds (dataclass, frozen)
#     utilization_good / utilization_warning         (0.80 / 0.60)
#     rate_variance_good / rate_variance_warning     (0.00 / -0.10)
#     rate_variance_severe                           (-0.20)
#       lower edge of the "10-20% Below" distribution band
#     idle_healthy_months / idle_warning_months      (6 / 12)
#     growth_good / growth_warning                   (0.05 / 0.00)
#   Validated on construction: a good bound can never be looser
#   than its warning bound.
#
# - MetricsEngine
#     Methods:
#     --------
#     - utilization_status(value) -> Status    (higher is better)
#     - rate_variance_status(value) -> Status  (higher is better)
#     - growth_status(value) -> Status         (higher is better)
#     - idle_status(avg_months_idle) -> Status (lower is better)
#
# FUNCTIONS:
# ----------
# - utilization(total, leased) -> float | None
# - rate_variance(billed, benchmark) -> float | None
# - month_over_month(rows, value, period) -> PeriodDelta | None
#
# ==============================================

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

# Floating point slack so a computed 0.6 grades like a literal 0.6
_EPSILON = 1e-9


class Status(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class MetricThresholds:
    """
    Thresholds that grade each KPI.

    Higher-is-better metrics (utilization, rate variance, growth) are good at
    or above ``*_good`` and warning at or above ``*_warning``. Idle months are
    lower-is-better: good at or below ``idle_healthy_months``, warning at or
    below ``idle_warning_months``.
    """

    utilization_good: float = 0.80
    utilization_warning: float = 0.60
    rate_variance_good: float = 0.0
    rate_variance_warning: float = -0.10
    rate_variance_severe: float = -0.20
    idle_healthy_months: float = 6
    idle_warning_months: float = 12
    growth_good: float = 0.05
    growth_warning: float = 0.0

    def __post_init__(self):
        pairs = [
            ("utilization", self.utilization_good, self.utilization_warning),
            ("rate_variance", self.rate_variance_good, self.rate_variance_warning),
            ("growth", self.growth_good, self.growth_warning),
        ]
        for name, good, warning in pairs:
            if good < warning:
                raise ValueError(
                    f"{name}: good threshold ({good}) must not be below warning threshold ({warning})"
                )
        if self.rate_variance_warning < self.rate_variance_severe:
            raise ValueError(
                f"rate_variance: warning threshold ({self.rate_variance_warning}) must not be below "
                f"severe threshold ({self.rate_variance_severe})"
            )
        if self.idle_healthy_months > self.idle_warning_months:
            raise ValueError(
                f"idle: healthy months ({self.idle_healthy_months}) must not exceed "
                f"warning months ({self.idle_warning_months})"
            )

    def to_dict(self) -> Dict[str, float]:
        return {
            "utilization_good": self.utilization_good,
            "utilization_warning": self.utilization_warning,
            "rate_variance_good": self.rate_variance_good,
            "rate_variance_warning": self.rate_variance_warning,
            "rate_variance_severe": self.rate_variance_severe,
            "idle_healthy_months": self.idle_healthy_months,
            "idle_warning_months": self.idle_warning_months,
            "growth_good": self.growth_good,
            "growth_warning": self.growth_warning,
        }


def utilization(total: Optional[float], leased: Optional[float]) -> Optional[float]:
    """
    Leased share of a population.

    Args:
        total: Population size
        leased: Leased count

    Returns:
        leased / total clamped to [0, 1], or None when total is not positive
    """
    if not total or total <= 0:
        return None
    ratio = (leased or 0) / total
    return min(1.0, max(0.0, ratio))


def rate_variance(billed: Optional[float], benchmark: Optional[float]) -> Optional[float]:
    """Relative difference of the billed rate from its card rate."""
    if billed is None or benchmark is None or benchmark <= 0:
        return None
    return (billed - benchmark) / benchmark


def growth(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    if current is None or previous is None or previous == 0:
        return None
    return (current - previous) / previous


class MetricsEngine:
    """
    Grades KPI values against a MetricThresholds instance.

    A missing value always grades NEUTRAL.
    """

    def __init__(self, thresholds: Optional[MetricThresholds] = None):
        self.thresholds = thresholds or MetricThresholds()

    def utilization_status(self, value: Optional[float]) -> Status:
        t = self.thresholds
        return _higher_is_better(value, t.utilization_good, t.utilization_warning)

    def rate_variance_status(self, value: Optional[float]) -> Status:
        t = self.thresholds
        return _higher_is_better(value, t.rate_variance_good, t.rate_variance_warning)

    def growth_status(self, value: Optional[float]) -> Status:
        t = self.thresholds
        return _higher_is_better(value, t.growth_good, t.growth_warning)

    def idle_status(self, avg_months_idle: Optional[float]) -> Status:
        if avg_months_idle is None:
            return Status.NEUTRAL
        t = self.thresholds
        if avg_months_idle <= t.idle_healthy_months + _EPSILON:
            return Status.GOOD
        if avg_months_idle <= t.idle_warning_months + _EPSILON:
            return Status.WARNING
        return Status.CRITICAL

    def utilization_with_status(self, total: int, leased: int) -> Dict[str, Any]:
        value = utilization(total, leased)
        return {"utilization": value, "status": self.utilization_status(value).value}


def _higher_is_better(value: Optional[float], good: float, warning: float) -> Status:
    if value is None:
        return Status.NEUTRAL
    if value >= good - _EPSILON:
        return Status.GOOD
    if value >= warning - _EPSILON:
        return Status.WARNING
    return Status.CRITICAL


@dataclass(frozen=True)
class PeriodDelta:
    """Change between the latest period and the one returned before it."""

    current_period: str
    previous_period: str
    current: float
    previous: float

    @property
    def change(self) -> float:
        return self.current - self.previous

    @property
    def change_pct(self) -> Optional[float]:
        return growth(self.current, self.previous)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_period": self.current_period,
            "previous_period": self.previous_period,
            "current": self.current,
            "previous": self.previous,
            "change": self.change,
            "change_pct": self.change_pct,
        }


def month_over_month(
    rows: Iterable[Any],
    value: Callable[[Any], Optional[float]],
    period: Callable[[Any], str] = lambda row: row.period,
) -> Optional[PeriodDelta]:
    """
    Compare the two most recent rows of a series.

    Rows are ordered by descending period key and the first two are paired
    as they come. A missing month between them is not filled in, so the
    pair may not be calendar-adjacent.

    Args:
        rows: Series rows for one group
        value: Extracts the compared number from a row
        period: Extracts the YYYY-MM key from a row

    Returns:
        PeriodDelta, or None when fewer than two rows have a value
    """
    ordered = sorted(rows, key=period, reverse=True)
    if len(ordered) < 2:
        return None

    latest, previous = ordered[0], ordered[1]
    current_value, previous_value = value(latest), value(previous)
    if current_value is None or previous_value is None:
        return None

    return PeriodDelta(
        current_period=period(latest),
        previous_period=period(previous),
        current=current_value,
        previous=previous_value,
    )
