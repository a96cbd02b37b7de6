# ==============================================
# Filters
# ==============================================
#
# PURPOSE:
#   The user-selected slice of the fleet a request works on.
#
# CLASSES:
# --------
# - Period (Enum)
#     Revenue window: LTM (default), YTD, LQA, L3M, L6M.
#     - start_date(today) -> date     → First day inside the window
#     - annualization_factor -> int   → 4 for LQA, 1 otherwise
#
# - FilterSet (dataclass, frozen)
#     branch, type, usage, idle_bucket, period, status.
#     None means unconstrained; "all" / "" from callers becomes None.
#
#     Methods:
#     --------
#     - from_mapping(params: dict) -> FilterSet  (classmethod)
#     - matches(labels: dict) -> bool
#     - constraint(dimension) -> str | None
#     - active_only -> bool
#
# ==============================================

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from fleet_analytics.classification import IdleDurationBucket

ALL = "all"

FILTER_DIMENSIONS = ("branch", "type", "usage", "idle_bucket", "status")


class Period(str, Enum):
    LTM = "LTM"
    YTD = "YTD"
    LQA = "LQA"
    L3M = "L3M"
    L6M = "L6M"

    @property
    def label(self) -> str:
        return _PERIOD_LABELS[self]

    @property
    def annualization_factor(self) -> int:
        return 4 if self is Period.LQA else 1

    def start_date(self, today: date) -> date:
        """First day of the window ending at ``today``."""
        if self is Period.YTD:
            return date(today.year, 1, 1)
        return _months_before(today, _PERIOD_MONTHS[self])

    @classmethod
    def parse(cls, value: Any) -> "Period":
        if value is None or (isinstance(value, str) and value.strip().lower() in ("", ALL)):
            return cls.LTM
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                f"Unknown period '{value}'. Expected one of: {', '.join(p.value for p in cls)}"
            ) from None


_PERIOD_LABELS = {
    Period.LTM: "Last 12 Months",
    Period.YTD: "Year to Date",
    Period.LQA: "Last Quarter (Annualized)",
    Period.L3M: "Last 3 Months",
    Period.L6M: "Last 6 Months",
}

_PERIOD_MONTHS = {
    Period.LTM: 12,
    Period.LQA: 3,
    Period.L3M: 3,
    Period.L6M: 6,
}


def _months_before(today: date, months: int) -> date:
    month_index = today.year * 12 + (today.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    # Clamp the day for shorter months (Mar 31 - 1 month -> Feb 28/29)
    for day in (today.day, 30, 29, 28):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return date(year, month, 28)


@dataclass(frozen=True)
class FilterSet:
    """
    Optional constraints on the population a request aggregates.

    An unset ``status`` means "active fleet only"; a concrete status switches
    the request to that status alone, which is how audit views see SOLD or
    RETIRED assets.
    """

    branch: Optional[str] = None
    type: Optional[str] = None
    usage: Optional[str] = None
    idle_bucket: Optional[str] = None
    period: Period = Period.LTM
    status: Optional[str] = None

    @property
    def active_only(self) -> bool:
        return self.status is None

    def constraint(self, dimension: str) -> Optional[str]:
        if dimension not in FILTER_DIMENSIONS:
            return None
        return getattr(self, dimension)

    def is_constrained(self) -> bool:
        return any(self.constraint(d) is not None for d in FILTER_DIMENSIONS)

    def with_type(self, canonical_type: Optional[str]) -> "FilterSet":
        return replace(self, type=canonical_type)

    def matches(self, labels: Mapping[str, str]) -> bool:
        """
        Check a record's labels against every set constraint.

        A dimension the record does not carry (e.g. idle_bucket on an asset)
        is not checked.
        """
        for dimension in FILTER_DIMENSIONS:
            wanted = self.constraint(dimension)
            if wanted is None or dimension not in labels:
                continue
            if dimension == "status" and _label_matches(dimension, wanted, labels.get("raw_status")):
                continue
            if not _label_matches(dimension, wanted, labels[dimension]):
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch": self.branch,
            "type": self.type,
            "usage": self.usage,
            "idle_bucket": self.idle_bucket,
            "period": self.period.value,
            "status": self.status,
        }

    @classmethod
    def from_mapping(cls, params: Optional[Mapping[str, Any]] = None) -> "FilterSet":
        """
        Build a FilterSet from request-style parameters.

        Accepts both ``idleBucket`` and ``idle_bucket``. "all" or blank
        values leave a dimension unconstrained.

        Args:
            params: Mapping of filter names to raw values

        Returns:
            A FilterSet instance

        Raises:
            ValueError: If the period or idle bucket is not recognised
        """
        params = params or {}

        idle_raw = _clean(params.get("idle_bucket", params.get("idleBucket")))
        idle_bucket = None
        if idle_raw is not None:
            parsed = IdleDurationBucket.parse(idle_raw)
            if parsed is None:
                raise ValueError(f"Unknown idle bucket '{idle_raw}'")
            idle_bucket = parsed.value

        usage = _clean(params.get("usage"))
        status = _clean(params.get("status"))

        return cls(
            branch=_clean(params.get("branch")),
            type=_clean(params.get("type")),
            usage=usage.upper() if usage else None,
            idle_bucket=idle_bucket,
            period=Period.parse(params.get("period")),
            status=status.upper() if status else None,
        )


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == ALL:
        return None
    return text


def _label_matches(dimension: str, wanted: str, actual: Any) -> bool:
    if actual is None:
        return False
    if dimension == "branch":
        return str(actual).strip().lower() == wanted.strip().lower()
    if dimension == "idle_bucket":
        return IdleDurationBucket.parse(actual) == IdleDurationBucket.parse(wanted)
    return str(actual).strip().upper() == wanted.strip().upper()
