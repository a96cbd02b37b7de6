# ==============================================
# Idle & Revenue Summaries
# ==============================================
#
# PURPOSE:
#   Roll the analytics snapshots (idle assets, invoice lines) up
#   into the headline figures and breakdowns the dashboard shows.
#
# WHY THIS FILE EXISTS:
#   The analytics store publishes row-level views. Grouping them
#   here, with the same MultiGrouper the fleet counts use, keeps
#   every breakdown consistent with the classifier's rules.
#
# CLASSES:
# --------
# - IdleAccumulator / RevenueAccumulator
#     Running sums for one group; add(ClassifiedRecord).
#
# - IdleSummary / RevenueSummary (dataclass)
#     Headline figures of a whole snapshot.
#
# - IdleReport / RevenueReport (dataclass)
#     Summary + every breakdown, each a list of plain dicts.
#
# FUNCTIONS:
# ----------
# - summarize_idle(records, classifier, metrics, filters, critical_limit)
#       -> IdleReport
# - summarize_revenue(records, classifier, metrics, filters)
#       -> RevenueReport
#
# ==============================================

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fleet_analytics.classification import AssetClassifier, IdleDurationBucket, UsageBucket
from fleet_analytics.filters import FilterSet, Period
from fleet_analytics.models import ClassifiedRecord

from .grouping import MultiGrouper
from .metrics import _EPSILON, MetricsEngine, MetricThresholds, rate_variance

CRITICAL_IDLE_BUCKET = IdleDurationBucket.OVER_24.value

NO_CARD_RATE = "No Card Rate"
AT_OR_ABOVE_CARD = "At or Above Card"


def _percent(bound: float) -> str:
    return f"{round(abs(bound) * 100, 2):g}"


def variance_buckets(thresholds: Optional[MetricThresholds] = None) -> Tuple[str, ...]:
    """
    Distribution labels in report order.

    The two below-card band edges are the rate variance warning and severe
    thresholds, so the defaults give "Within 10%", "10-20% Below" and
    "More than 20% Below".
    """
    t = thresholds or MetricThresholds()
    warning = _percent(t.rate_variance_warning)
    severe = _percent(t.rate_variance_severe)
    return (
        NO_CARD_RATE,
        AT_OR_ABOVE_CARD,
        f"Within {warning}%",
        f"{warning}-{severe}% Below",
        f"More than {severe}% Below",
    )


VARIANCE_BUCKETS = variance_buckets()


def _mean(total: float, count: int) -> Optional[float]:
    return total / count if count else None


def _usage_label(value: str) -> str:
    # Custom rule tables may name buckets outside UsageBucket
    try:
        return UsageBucket(value).label
    except ValueError:
        return value


# ---------- Idle ----------

@dataclass
class IdleAccumulator:
    unit_count: int = 0
    total_cost: float = 0.0
    months_sum: float = 0.0
    months_count: int = 0
    opportunity_cost: float = 0.0
    never_leased: int = 0
    critical_count: int = 0

    def add(self, item: ClassifiedRecord) -> None:
        record = item.record
        self.unit_count += 1
        self.total_cost += record.asset_cost or 0.0
        if record.months_idle is not None:
            self.months_sum += record.months_idle
            self.months_count += 1
        self.opportunity_cost += record.card_rate or 0.0
        if record.never_leased:
            self.never_leased += 1
        if item.labels.get("idle_bucket") == CRITICAL_IDLE_BUCKET:
            self.critical_count += 1

    @property
    def avg_months_idle(self) -> Optional[float]:
        return _mean(self.months_sum, self.months_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit_count": self.unit_count,
            "total_cost": self.total_cost,
            "avg_months_idle": self.avg_months_idle,
            "monthly_opportunity_cost": self.opportunity_cost,
            "never_leased": self.never_leased,
            "critical_count": self.critical_count,
        }


@dataclass
class IdleSummary:
    """Headline idle figures for one snapshot month."""

    period: Optional[str]
    total_idle: int
    total_idle_cost: float
    avg_months_idle: Optional[float]
    total_opportunity_cost: float
    total_never_leased: int
    critical_count: int
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "total_idle": self.total_idle,
            "total_idle_cost": self.total_idle_cost,
            "avg_months_idle": self.avg_months_idle,
            "total_opportunity_cost": self.total_opportunity_cost,
            "total_never_leased": self.total_never_leased,
            "critical_count": self.critical_count,
            "status": self.status,
        }


@dataclass
class IdleReport:
    summary: IdleSummary
    by_duration: List[Dict[str, Any]] = field(default_factory=list)
    by_branch: List[Dict[str, Any]] = field(default_factory=list)
    by_type: List[Dict[str, Any]] = field(default_factory=list)
    by_usage: List[Dict[str, Any]] = field(default_factory=list)
    matrix: List[Dict[str, Any]] = field(default_factory=list)
    critical: List[Dict[str, Any]] = field(default_factory=list)
    never_leased: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "by_duration": self.by_duration,
            "by_branch": self.by_branch,
            "by_type": self.by_type,
            "by_usage": self.by_usage,
            "matrix": self.matrix,
            "critical": self.critical,
            "never_leased": self.never_leased,
        }


def summarize_idle(
    records: Iterable[Any],
    classifier: AssetClassifier,
    metrics: MetricsEngine,
    filters: Optional[FilterSet] = None,
    critical_limit: int = 25,
) -> IdleReport:
    """
    Summarize one idle snapshot.

    Args:
        records: IdleRecords (or classified ones) from a single snapshot month
        classifier: Shared classifier
        metrics: Grades the average months idle
        filters: Optional FilterSet narrowing the population
        critical_limit: Length cap of the critical (24+ months) list

    Returns:
        IdleReport with every breakdown filled in
    """
    groupings = [("idle_bucket",), ("branch",), ("type",), ("usage",), ("branch", "idle_bucket")]
    grouper = MultiGrouper(groupings, IdleAccumulator)
    now = classifier.reference_date()
    kept: List[ClassifiedRecord] = []
    period = None

    for record in records:
        classified = classifier.classify_record(record, now)
        if filters is not None and not filters.matches(classified.labels):
            continue
        grouper.add(classified.labels, classified)
        kept.append(classified)
        period = max(period or "", classified.record.period or "") or None

    totals: IdleAccumulator = grouper.totals
    avg_months = totals.avg_months_idle
    summary = IdleSummary(
        period=period,
        total_idle=totals.unit_count,
        total_idle_cost=totals.total_cost,
        avg_months_idle=avg_months,
        total_opportunity_cost=totals.opportunity_cost,
        total_never_leased=totals.never_leased,
        critical_count=totals.critical_count,
        status=metrics.idle_status(avg_months).value,
    )

    # Duration buckets always come out in table order, empty ones included
    by_bucket = {key[0]: acc for key, acc in grouper.results(("idle_bucket",))}
    by_duration = []
    for bucket in classifier.rules.idle_buckets:
        acc = by_bucket.get(bucket, IdleAccumulator())
        by_duration.append({"idle_bucket": bucket, "label": f"{bucket} Months", **acc.to_dict()})

    order = {bucket: i for i, bucket in enumerate(classifier.rules.idle_buckets)}
    matrix = [
        {"branch": branch, "idle_bucket": bucket, "unit_count": acc.unit_count, "total_cost": acc.total_cost}
        for (branch, bucket), acc in sorted(
            grouper.results(("branch", "idle_bucket")),
            key=lambda entry: (entry[0][0], order.get(entry[0][1], len(order))),
        )
    ]

    by_type = _grouped_rows(grouper, "type")
    by_type.sort(key=lambda row: (-row["unit_count"], row["type"]))

    return IdleReport(
        summary=summary,
        by_duration=by_duration,
        by_branch=_grouped_rows(grouper, "branch"),
        by_type=by_type,
        by_usage=_grouped_rows(grouper, "usage"),
        matrix=matrix,
        critical=[c.to_dict() for c in rank_critical_idle(kept, critical_limit)],
        never_leased=[c.to_dict() for c in rank_never_leased(kept)],
    )


def rank_critical_idle(records: Iterable[ClassifiedRecord], limit: Optional[int] = None) -> List[ClassifiedRecord]:
    """24+ month idle assets, longest idle first, then most expensive."""
    critical = [c for c in records if c.labels.get("idle_bucket") == CRITICAL_IDLE_BUCKET]
    critical.sort(key=lambda c: (-(c.record.months_idle or 0), -(c.record.asset_cost or 0), c.record.unit))
    return critical if limit is None else critical[:limit]


def rank_never_leased(records: Iterable[ClassifiedRecord]) -> List[ClassifiedRecord]:
    never = [c for c in records if c.record.never_leased]
    never.sort(key=lambda c: (-(c.record.months_idle or 0), c.record.unit))
    return never


# ---------- Revenue ----------

@dataclass
class RevenueAccumulator:
    """
    Sums over invoice lines that carry a card rate.

    Lines without a card rate are counted separately and never enter the
    averages, matching how the variance figures are defined.
    """

    invoice_count: int = 0
    total_billed: float = 0.0
    billed_count: int = 0
    card_sum: float = 0.0
    variance_sum: float = 0.0
    variance_count: int = 0
    variance_pct_sum: float = 0.0
    variance_pct_count: int = 0
    at_or_above_card: int = 0
    below_card: int = 0
    without_card_rate: int = 0

    def add(self, item: ClassifiedRecord) -> None:
        record = item.record
        if record.card_rate is None:
            self.without_card_rate += 1
            return

        self.invoice_count += 1
        self.card_sum += record.card_rate
        if record.billed_rate is not None:
            self.total_billed += record.billed_rate
            self.billed_count += 1

        variance = record.variance
        if variance is not None:
            self.variance_sum += variance
            self.variance_count += 1
            if variance >= 0:
                self.at_or_above_card += 1
            else:
                self.below_card += 1

        pct = rate_variance(record.billed_rate, record.card_rate)
        if pct is not None:
            self.variance_pct_sum += pct
            self.variance_pct_count += 1

    @property
    def avg_billed_rate(self) -> Optional[float]:
        return _mean(self.total_billed, self.billed_count)

    @property
    def avg_card_rate(self) -> Optional[float]:
        return _mean(self.card_sum, self.invoice_count)

    @property
    def avg_variance(self) -> Optional[float]:
        return _mean(self.variance_sum, self.variance_count)

    @property
    def avg_variance_pct(self) -> Optional[float]:
        return _mean(self.variance_pct_sum, self.variance_pct_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoice_count": self.invoice_count,
            "total_billed": self.total_billed,
            "avg_billed_rate": self.avg_billed_rate,
            "avg_card_rate": self.avg_card_rate,
            "avg_variance": self.avg_variance,
            "avg_variance_pct": self.avg_variance_pct,
        }


@dataclass
class RevenueSummary:
    """Headline revenue figures over the invoice lines with a card rate."""

    period: str
    invoice_count: int
    total_billed: float
    avg_billed_rate: Optional[float]
    avg_card_rate: Optional[float]
    avg_variance: Optional[float]
    avg_variance_pct: Optional[float]
    at_or_above_card: int
    below_card: int
    without_card_rate: int
    status: str
    annualized_billed: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "period_label": Period(self.period).label,
            "invoice_count": self.invoice_count,
            "total_billed": self.total_billed,
            "annualized_billed": self.annualized_billed,
            "avg_billed_rate": self.avg_billed_rate,
            "avg_card_rate": self.avg_card_rate,
            "avg_variance": self.avg_variance,
            "avg_variance_pct": self.avg_variance_pct,
            "at_or_above_card": self.at_or_above_card,
            "below_card": self.below_card,
            "without_card_rate": self.without_card_rate,
            "status": self.status,
        }


@dataclass
class RevenueReport:
    summary: RevenueSummary
    by_branch: List[Dict[str, Any]] = field(default_factory=list)
    by_type: List[Dict[str, Any]] = field(default_factory=list)
    by_usage: List[Dict[str, Any]] = field(default_factory=list)
    variance_distribution: List[Dict[str, Any]] = field(default_factory=list)
    units_without_card_rate: List[Dict[str, Any]] = field(default_factory=list)
    trend: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "by_branch": self.by_branch,
            "by_type": self.by_type,
            "by_usage": self.by_usage,
            "variance_distribution": self.variance_distribution,
            "units_without_card_rate": self.units_without_card_rate,
            "trend": self.trend,
        }


def variance_bucket(
    billed: Optional[float],
    card: Optional[float],
    thresholds: Optional[MetricThresholds] = None,
) -> str:
    """Place one invoice line in the variance distribution."""
    t = thresholds or MetricThresholds()
    _, _, within, between, below = variance_buckets(t)
    if card is None:
        return NO_CARD_RATE
    if billed is not None and billed - card >= 0:
        return AT_OR_ABOVE_CARD
    pct = rate_variance(billed, card)
    if pct is not None and pct >= t.rate_variance_warning - _EPSILON:
        return within
    if pct is not None and pct >= t.rate_variance_severe - _EPSILON:
        return between
    return below


@dataclass
class _DistributionAccumulator:
    invoice_count: int = 0
    total_billed: float = 0.0

    def add(self, item: ClassifiedRecord) -> None:
        self.invoice_count += 1
        self.total_billed += item.record.billed_rate or 0.0


def summarize_revenue(
    records: Iterable[Any],
    classifier: AssetClassifier,
    metrics: MetricsEngine,
    filters: Optional[FilterSet] = None,
) -> RevenueReport:
    """
    Summarize the invoice lines of one revenue window.

    Args:
        records: RevenueRecords already restricted to the window
        classifier: Shared classifier
        metrics: Grades the average variance percentage
        filters: Optional FilterSet; its period selects the annualization

    Returns:
        RevenueReport with every breakdown filled in
    """
    filters = filters or FilterSet()
    groupings = [("branch",), ("type",), ("usage",), ("period",)]
    grouper = MultiGrouper(groupings, RevenueAccumulator)
    thresholds = metrics.thresholds
    distribution: Dict[str, _DistributionAccumulator] = {
        b: _DistributionAccumulator() for b in variance_buckets(thresholds)
    }
    missing_card: Dict[tuple, Dict[str, Any]] = {}
    now = classifier.reference_date()

    for record in records:
        classified = classifier.classify_record(record, now)
        if not filters.matches(classified.labels):
            continue
        classified.labels.setdefault("period", "")
        grouper.add(classified.labels, classified)

        line = classified.record
        distribution[variance_bucket(line.billed_rate, line.card_rate, thresholds)].add(classified)
        if line.card_rate is None:
            key = (classified.labels["type"], classified.labels["usage"], classified.labels["length"])
            entry = missing_card.setdefault(key, {"units": set(), "revenue_at_risk": 0.0})
            entry["units"].add(line.unit)
            entry["revenue_at_risk"] += line.billed_rate or 0.0

    totals: RevenueAccumulator = grouper.totals
    factor = filters.period.annualization_factor
    summary = RevenueSummary(
        period=filters.period.value,
        invoice_count=totals.invoice_count,
        total_billed=totals.total_billed,
        avg_billed_rate=totals.avg_billed_rate,
        avg_card_rate=totals.avg_card_rate,
        avg_variance=totals.avg_variance,
        avg_variance_pct=totals.avg_variance_pct,
        at_or_above_card=totals.at_or_above_card,
        below_card=totals.below_card,
        without_card_rate=totals.without_card_rate,
        status=metrics.rate_variance_status(totals.avg_variance_pct).value,
        annualized_billed=totals.total_billed * factor if factor != 1 else None,
    )

    by_type = _grouped_rows(grouper, "type", skip_empty=True)
    by_type.sort(key=lambda row: (-row["total_billed"], row["type"]))

    trend = [
        {"month": key[0], **acc.to_dict()}
        for key, acc in grouper.results(("period",))
        if key[0] and acc.invoice_count
    ]

    units_without = [
        {
            "type": key[0],
            "usage": key[1],
            "length": key[2],
            "unit_count": len(entry["units"]),
            "total_revenue_at_risk": entry["revenue_at_risk"],
        }
        for key, entry in missing_card.items()
    ]
    units_without.sort(key=lambda row: (-row["unit_count"], row["type"], row["usage"], row["length"]))

    return RevenueReport(
        summary=summary,
        by_branch=_grouped_rows(grouper, "branch", skip_empty=True),
        by_type=by_type,
        by_usage=_grouped_rows(grouper, "usage", skip_empty=True),
        variance_distribution=[
            {"variance_bucket": bucket, "invoice_count": acc.invoice_count, "total_billed": acc.total_billed}
            for bucket, acc in distribution.items()
        ],
        units_without_card_rate=units_without,
        trend=trend,
    )


def _grouped_rows(grouper: MultiGrouper, dimension: str, skip_empty: bool = False) -> List[Dict[str, Any]]:
    rows = []
    for key, acc in grouper.results((dimension,)):
        if skip_empty and not acc.invoice_count:
            continue
        row = {dimension: key[0], **acc.to_dict()}
        if dimension == "usage":
            row["label"] = _usage_label(key[0])
        rows.append(row)
    return rows
