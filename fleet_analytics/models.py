# ==============================================
# Record Models (Data Classes)
# ==============================================
#
# PURPOSE:
#   Read-only snapshots of the rows both data sources publish.
#   The engine never mutates them; every request builds fresh ones.
#
# CLASSES:
# --------
# - AssetStatus (Enum)    → AVAILABLE, LEASED, OTHER
# - AssetRecord           → One trailer from the inventory store
# - IdleRecord            → One asset in one monthly idle snapshot
# - RevenueRecord         → One invoice line with its card rate
# - PeriodRow             → One (period, group) point of a trend series
# - ClassifiedRecord      → Any record plus its bucket labels
#
# Each record has:
#   - from_row(row: dict) (classmethod) → Build from a normalized row
#   - to_dict() -> dict                 → Plain dict for exports
#
# ==============================================

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from fleet_analytics.normalization import ValueParser


class AssetStatus(str, Enum):
    """
    Lease status of an asset.

    Only AVAILABLE and LEASED count toward the active fleet. Every other
    upstream status (SOLD, RETIRED, IN SHOP, ...) collapses into OTHER;
    the original string stays on the record as ``raw_status``.
    """
    AVAILABLE = "AVAILABLE"
    LEASED = "LEASED"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, raw_status: Any) -> "AssetStatus":
        text = ValueParser.to_text(raw_status)
        if text is None:
            return cls.OTHER
        upper = text.upper()
        if upper == cls.AVAILABLE.value:
            return cls.AVAILABLE
        if upper == cls.LEASED.value:
            return cls.LEASED
        return cls.OTHER


ACTIVE_STATUSES = frozenset({AssetStatus.AVAILABLE, AssetStatus.LEASED})


@dataclass(frozen=True)
class AssetRecord:
    """A trailer as the inventory store reports it. Attribute values are raw."""

    unit: str
    branch: Optional[str]
    status: AssetStatus
    raw_status: Optional[str] = None
    raw_type: Optional[str] = None
    raw_length: Optional[Any] = None
    model_year: Optional[Any] = None
    cost: Optional[float] = None
    purchase_date: Optional[date] = None
    sale_date: Optional[date] = None
    make: Optional[str] = None
    vin: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_leased(self) -> bool:
        return self.status is AssetStatus.LEASED

    @property
    def is_available(self) -> bool:
        return self.status is AssetStatus.AVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit,
            "branch": self.branch,
            "status": self.raw_status or self.status.value,
            "type": self.raw_type,
            "length": self.raw_length,
            "model_year": self.model_year,
            "make": self.make,
            "vin": self.vin,
            "cost": self.cost,
            "purchase_date": self.purchase_date,
            "sale_date": self.sale_date,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AssetRecord":
        """
        Build an AssetRecord from a normalized inventory row.

        Args:
            row: Row with canonical keys (see FieldNormalizer)

        Returns:
            An AssetRecord instance
        """
        raw_status = ValueParser.to_text(row.get("status"))
        return cls(
            unit=str(row.get("unit") or ""),
            branch=ValueParser.to_text(row.get("branch")),
            status=AssetStatus.parse(raw_status),
            raw_status=raw_status,
            raw_type=row.get("type"),
            raw_length=row.get("length"),
            model_year=row.get("model_year"),
            cost=ValueParser.to_float(row.get("cost")),
            purchase_date=ValueParser.to_date(row.get("purchase_date")),
            sale_date=ValueParser.to_date(row.get("sale_date")),
            make=ValueParser.to_text(row.get("make")),
            vin=ValueParser.to_text(row.get("vin")),
        )


@dataclass(frozen=True)
class IdleRecord:
    """One non-leased asset in one monthly snapshot of the idle view."""

    unit: str
    branch: Optional[str]
    period: Optional[str]
    months_idle: Optional[float] = None
    cumulative_leases: int = 0
    asset_cost: Optional[float] = None
    card_rate: Optional[float] = None  # monthly opportunity cost
    raw_type: Optional[str] = None
    raw_usage: Optional[str] = None
    raw_length: Optional[Any] = None
    model_year: Optional[Any] = None
    last_active_month: Optional[str] = None
    year_range: Optional[str] = None

    @property
    def never_leased(self) -> bool:
        return self.cumulative_leases == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit,
            "branch": self.branch,
            "period": self.period,
            "type": self.raw_type,
            "usage": self.raw_usage,
            "length": self.raw_length,
            "year_range": self.year_range,
            "asset_cost": self.asset_cost,
            "last_active_month": self.last_active_month,
            "cumulative_leases": self.cumulative_leases,
            "months_idle": self.months_idle,
            "card_rate": self.card_rate,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "IdleRecord":
        return cls(
            unit=str(row.get("unit") or ""),
            branch=ValueParser.to_text(row.get("branch")),
            period=ValueParser.to_period(row.get("period")),
            months_idle=ValueParser.to_float(row.get("months_idle")),
            cumulative_leases=ValueParser.to_int(row.get("cumulative_leases")) or 0,
            asset_cost=ValueParser.to_float(row.get("cost")),
            card_rate=ValueParser.to_float(row.get("card_rate")),
            raw_type=row.get("type"),
            raw_usage=ValueParser.to_text(row.get("usage")),
            raw_length=row.get("length"),
            model_year=row.get("model_year"),
            last_active_month=ValueParser.to_text(row.get("last_active_month")),
            year_range=ValueParser.to_text(row.get("year_range")),
        )


@dataclass(frozen=True)
class RevenueRecord:
    """One invoice line: the billed monthly rate against its card rate."""

    unit: str
    branch: Optional[str]
    billed_rate: Optional[float]
    card_rate: Optional[float] = None
    billing_stop_date: Optional[date] = None
    raw_type: Optional[str] = None
    raw_usage: Optional[str] = None
    raw_length: Optional[Any] = None
    model_year: Optional[Any] = None
    year_range: Optional[str] = None

    @property
    def period(self) -> Optional[str]:
        return ValueParser.to_period(self.billing_stop_date)

    @property
    def has_card_rate(self) -> bool:
        return self.card_rate is not None

    @property
    def variance(self) -> Optional[float]:
        if self.billed_rate is None or self.card_rate is None:
            return None
        return self.billed_rate - self.card_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit,
            "branch": self.branch,
            "type": self.raw_type,
            "usage": self.raw_usage,
            "length": self.raw_length,
            "year_range": self.year_range,
            "billing_stop_date": self.billing_stop_date,
            "billed_rate": self.billed_rate,
            "card_rate": self.card_rate,
            "variance": self.variance,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RevenueRecord":
        return cls(
            unit=str(row.get("unit") or ""),
            branch=ValueParser.to_text(row.get("branch")),
            billed_rate=ValueParser.to_float(row.get("billed_rate")),
            card_rate=ValueParser.to_float(row.get("card_rate")),
            billing_stop_date=ValueParser.to_date(row.get("billing_stop_date")),
            raw_type=row.get("type"),
            raw_usage=ValueParser.to_text(row.get("usage")),
            raw_length=row.get("length"),
            model_year=row.get("model_year"),
            year_range=ValueParser.to_text(row.get("year_range")),
        )


@dataclass(frozen=True)
class PeriodRow:
    """
    Fleet counts for one group in one period of a trend series.

    ``type`` and ``usage`` are the raw history labels, present only when a
    filter on that dimension kept it in the grouping.
    """

    period: str
    group: str
    total: int = 0
    leased: int = 0
    type: Optional[str] = None
    usage: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PeriodRow":
        return cls(
            period=ValueParser.to_period(row.get("period")) or "",
            group=ValueParser.to_text(row.get("group")) or "",
            total=ValueParser.to_int(row.get("total")) or 0,
            leased=ValueParser.to_int(row.get("leased")) or 0,
            type=ValueParser.to_text(row.get("type")),
            usage=ValueParser.to_text(row.get("usage")),
        )


@dataclass
class ClassifiedRecord:
    """
    A record paired with the bucket labels the classifier gave it.

    ``labels`` maps dimension name (branch, type, usage, length, status,
    idle_bucket, period) to its canonical value. Only the dimensions that
    apply to the record kind are present.
    """

    record: Any
    labels: Dict[str, str] = field(default_factory=dict)

    def label(self, dimension: str) -> str:
        return self.labels[dimension]

    @property
    def is_active(self) -> bool:
        return getattr(self.record, "is_active", True)

    @property
    def is_leased(self) -> bool:
        return getattr(self.record, "is_leased", False)

    @property
    def is_available(self) -> bool:
        return getattr(self.record, "is_available", False)

    def to_dict(self) -> Dict[str, Any]:
        row = self.record.to_dict()
        for dimension, value in self.labels.items():
            if dimension == "raw_status":
                continue
            if dimension in _BUCKET_LABELS:
                row[f"{dimension}_bucket"] = value
            else:
                row[dimension] = value
        return row


_BUCKET_LABELS = ("type", "usage", "length", "status")
