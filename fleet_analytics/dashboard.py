"""
==============================================
Fleet Dashboard API
==============================================

The presentation-facing entry point. Each method is one request:
it fetches through the SourceCoordinator, classifies with the one
shared AssetClassifier, aggregates, grades, and returns plain dicts
ready for JSON.

USAGE EXAMPLES:

1. Utilization by type:
    dashboard = FleetDashboard(coordinator)
    dashboard.get_breakdown(["type"])

2. Type x usage matrix for one branch:
    dashboard.get_matrix("type", "usage", {"branch": "Dallas"})

3. Headline figures (degrades when analytics is down):
    summary = dashboard.get_summary()
    if summary["degraded"]:
        print(summary["sources"]["analytics"])

4. Exports:
    rows = dashboard.export_critical_idle({"branch": "Houston"})

Filters may be a FilterSet or a plain mapping such as request
query parameters; "all" leaves a dimension unconstrained.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from fleet_analytics.analysis import (
    Aggregator,
    MetricsEngine,
    growth,
    month_over_month,
    rank_critical_idle,
    rank_never_leased,
    rate_variance,
    summarize_idle,
    summarize_revenue,
    utilization,
    validate_dimensions,
)
from fleet_analytics.analysis.aggregator import AggregateBucket
from fleet_analytics.classification import AssetClassifier
from fleet_analytics.config import AppConfig
from fleet_analytics.coordination import (
    CoordinatedFetch,
    NoDataError,
    SourceCoordinator,
    SourceError,
    SourceResult,
)
from fleet_analytics.filters import FilterSet
from fleet_analytics.models import ClassifiedRecord, PeriodRow
from fleet_analytics.storage import validate_series

logger = logging.getLogger(__name__)

Filters = Union[FilterSet, Mapping[str, Any], None]


class FleetDashboard:
    """
    Request-level operations over the fleet data.

    Holds no per-request state: every call fetches fresh records, and the
    only things shared between calls are the classifier, the metrics
    engine and the injected coordinator.
    """

    def __init__(
        self,
        coordinator: SourceCoordinator,
        classifier: Optional[AssetClassifier] = None,
        metrics: Optional[MetricsEngine] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], date] = date.today,
    ):
        """
        Initialize the dashboard.

        Args:
            coordinator: Owns the two stores and their thread pools
            classifier: Shared classifier; built from the default rules if None
            metrics: KPI grading; built from config thresholds if None
            config: Optional configuration (thresholds, limits, environment)
        """
        self.coordinator = coordinator
        self.config = config or AppConfig()
        self.classifier = classifier or AssetClassifier(clock=clock)
        self.metrics = metrics or MetricsEngine(self.config.thresholds)
        self.aggregator = Aggregator(self.classifier)
        self.clock = clock

    @property
    def debug(self) -> bool:
        return not self.config.is_production

    # ------------------------------------------------------------------
    # Fleet counts (primary source)
    # ------------------------------------------------------------------

    def get_breakdown(self, dimensions: Sequence[str], filters: Filters = None) -> List[Dict[str, Any]]:
        """
        Fleet counts by one or two dimensions.

        Args:
            dimensions: e.g. ["type"] or ["branch", "usage"]
            filters: Optional filters

        Returns:
            One row per non-empty group: the dimension values, total,
            leased, available, utilization and status

        Raises:
            ValueError: On an unknown dimension or a bad dimension count
            PrimarySourceError: If the inventory source fails
        """
        grouping = validate_dimensions(dimensions)
        filter_set = self._filters(filters)
        records = self._fetch_assets(filter_set, active_only=filter_set.active_only)
        buckets = self.aggregator.aggregate(
            records, grouping, active_only=filter_set.active_only, filters=filter_set,
        )
        return [self._bucket_row(bucket) for bucket in buckets]

    def get_matrix(self, dim1: str, dim2: str, filters: Filters = None) -> List[Dict[str, Any]]:
        return self.get_breakdown([dim1, dim2], filters)

    def get_fleet_overview(self, filters: Filters = None) -> Dict[str, Any]:
        """Branch, type, usage, length and type x usage from one scan."""
        filter_set = self._filters(filters)
        records = self._fetch_assets(filter_set, active_only=filter_set.active_only)
        result = self.aggregator.fleet_overview(records, filter_set)
        return {
            "totals": self._bucket_row(result.totals),
            "by_branch": [self._bucket_row(b) for b in result.breakdown("branch")],
            "by_type": [self._bucket_row(b) for b in result.breakdown("type")],
            "by_usage": [self._bucket_row(b) for b in result.breakdown("usage")],
            "by_length": [self._bucket_row(b) for b in result.breakdown("length")],
            "type_usage_matrix": [self._bucket_row(b) for b in result.breakdown("type", "usage")],
            "rules_version": result.rules_version,
            "filters": filter_set.to_dict(),
        }

    def list_branches(self) -> List[str]:
        fetch = self.coordinator.fetch({"branches": lambda store: store.fetch_branches()})
        return fetch.primary["branches"]

    # ------------------------------------------------------------------
    # Summary (both sources)
    # ------------------------------------------------------------------

    def get_summary(self, filters: Filters = None) -> Dict[str, Any]:
        """
        Headline fleet figures plus idle and revenue summaries.

        Fleet counts come from the inventory source and are always present.
        The idle and revenue summaries are None when their analytics query
        is unavailable; ``degraded`` is then True and ``sources`` says why.

        Raises:
            PrimarySourceError: If the inventory source fails
        """
        filter_set = self._filters(filters)
        today = self.clock()

        fetch = self.coordinator.fetch(
            {"assets": lambda store: store.fetch_assets(filter_set, active_only=False)},
            {
                "idle": lambda store: store.fetch_idle_snapshot(None, filter_set),
                "revenue": lambda store: store.fetch_revenue_snapshot(filter_set.period, filter_set, today),
            },
        )

        now = self.classifier.reference_date()
        total = leased = available = other = 0
        for record in fetch.primary["assets"]:
            classified = self.classifier.classify_record(record, now)
            if not filter_set.matches(classified.labels):
                continue
            if filter_set.active_only and not classified.is_active:
                other += 1
                continue
            total += 1
            if classified.is_leased:
                leased += 1
            elif classified.is_available:
                available += 1

        util = utilization(total, leased)
        idle = self._secondary(fetch, "idle", lambda rows: summarize_idle(
            rows, self.classifier, self.metrics, filter_set, self.config.dashboard.critical_idle_limit,
        ).summary.to_dict())
        revenue = self._secondary(fetch, "revenue", lambda rows: summarize_revenue(
            rows, self.classifier, self.metrics, filter_set,
        ).summary.to_dict())

        return {
            "total": total,
            "leased": leased,
            "available": available,
            "other_status": other,
            "utilization": util,
            "utilization_status": self.metrics.utilization_status(util).value,
            "idle_summary": idle,
            "revenue_summary": revenue,
            "sources": fetch.sources(),
            "degraded": fetch.degraded,
            "rules_version": self.classifier.rules.version,
            "filters": filter_set.to_dict(),
        }

    # ------------------------------------------------------------------
    # Analytics views (secondary source)
    # ------------------------------------------------------------------

    def get_idle_report(self, filters: Filters = None, period: Optional[str] = None) -> Dict[str, Any]:
        """Idle summary and breakdowns of one snapshot month (latest by default)."""
        filter_set = self._filters(filters)
        fetch = self.coordinator.fetch(
            {}, {"idle": lambda store: store.fetch_idle_snapshot(period, filter_set)},
        )
        report = self._secondary(fetch, "idle", lambda rows: summarize_idle(
            rows, self.classifier, self.metrics, filter_set, self.config.dashboard.critical_idle_limit,
        ).to_dict())
        return self._analytics_response("idle", report, fetch, filter_set)

    def get_revenue_report(self, filters: Filters = None) -> Dict[str, Any]:
        """Billed vs card rate over the filter's revenue window."""
        filter_set = self._filters(filters)
        today = self.clock()
        fetch = self.coordinator.fetch(
            {}, {"revenue": lambda store: store.fetch_revenue_snapshot(filter_set.period, filter_set, today)},
        )
        report = self._secondary(fetch, "revenue", lambda rows: summarize_revenue(
            rows, self.classifier, self.metrics, filter_set,
        ).to_dict())
        return self._analytics_response("revenue", report, fetch, filter_set)

    def get_trend(
        self,
        dimension: str,
        last_n_periods: Optional[int] = None,
        filters: Filters = None,
    ) -> Dict[str, Any]:
        """
        Monthly utilization per group with a month-over-month comparison.

        The comparison pairs each group's two most recent months as
        returned; a missing month in between is not filled in. A group with
        a single month has no comparison (None).

        Args:
            dimension: "branch", "type" or "usage"
            last_n_periods: Months to include; defaults to configuration
            filters: Optional filters; branch, type and usage apply

        Returns:
            Dict with one series per group

        Raises:
            ValueError: On an unknown dimension, fewer than one period, or a
                status or idle bucket filter (the history only counts the
                active fleet, with no idle durations)
        """
        filter_set = self._filters(filters)
        periods = self.config.dashboard.trend_periods if last_n_periods is None else last_n_periods
        validate_series(dimension, periods)
        if filter_set.status is not None or filter_set.idle_bucket is not None:
            raise ValueError("Trend history covers the active fleet only; status and idle bucket filters do not apply")

        fetch = self.coordinator.fetch(
            {}, {"series": lambda store: store.fetch_period_series(dimension, periods, filter_set)},
        )
        series = self._secondary(fetch, "series", lambda rows: self._trend_series(dimension, rows, filter_set))
        response = self._analytics_response("series", series, fetch, filter_set)
        response["dimension"] = dimension
        response["periods"] = periods
        return response

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def export_inventory(self, filters: Filters = None) -> List[Dict[str, Any]]:
        """
        Asset rows with their bucket labels.

        An explicit status exports that status only; otherwise the active
        fleet (AVAILABLE and LEASED).

        Raises:
            NoDataError: If nothing matches
        """
        filter_set = self._filters(filters)
        records = self._fetch_assets(filter_set, active_only=filter_set.active_only)
        rows = [
            c.to_dict()
            for c in self._classify(records, filter_set)
            if not filter_set.active_only or c.is_active
        ]
        return self._non_empty("inventory", rows)

    def export_utilization(self, filters: Filters = None) -> List[Dict[str, Any]]:
        """
        Active-fleet asset rows with their buckets and a leased flag,
        ordered by branch then unit.

        Raises:
            NoDataError: If nothing matches
        """
        filter_set = self._filters(filters)
        records = self._fetch_assets(filter_set, active_only=True)
        rows = [
            dict(c.to_dict(), leased=c.is_leased)
            for c in self._classify(records, filter_set)
            if c.is_active
        ]
        rows.sort(key=lambda row: (row["branch"], row["unit"]))
        return self._non_empty("utilization", rows)

    def export_revenue(self, filters: Filters = None) -> List[Dict[str, Any]]:
        """
        Invoice lines of the filter's revenue window with the relative
        variance of each billed rate from its card rate.

        Lines come out newest billing stop date first, then by branch and
        unit; lines without a stop date go last.

        Raises:
            NoDataError: If nothing matches
            SourceError: If the analytics source is unavailable
        """
        filter_set = self._filters(filters)
        today = self.clock()
        lines = self._export_records(
            "revenue", "revenue",
            lambda store: store.fetch_revenue_snapshot(filter_set.period, filter_set, today),
            filter_set,
        )
        rows = []
        for classified in lines:
            line = classified.record
            rows.append(dict(classified.to_dict(), variance_pct=rate_variance(line.billed_rate, line.card_rate)))
        rows.sort(key=lambda row: (row["branch"], row["unit"]))
        rows.sort(key=lambda row: row["billing_stop_date"] or date.min, reverse=True)
        return self._non_empty("revenue", rows)

    def export_idle(self, filters: Filters = None, period: Optional[str] = None) -> List[Dict[str, Any]]:
        classified = self._idle_records("idle", filters, period)
        return self._non_empty("idle", [c.to_dict() for c in classified])

    def export_never_leased(self, filters: Filters = None) -> List[Dict[str, Any]]:
        classified = self._idle_records("never-leased", filters)
        return self._non_empty("never-leased", [c.to_dict() for c in rank_never_leased(classified)])

    def export_critical_idle(self, filters: Filters = None) -> List[Dict[str, Any]]:
        classified = self._idle_records("critical-idle", filters)
        return self._non_empty("critical-idle", [c.to_dict() for c in rank_critical_idle(classified)])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _filters(self, filters: Filters) -> FilterSet:
        if filters is None:
            filter_set = FilterSet()
        elif isinstance(filters, FilterSet):
            filter_set = filters
        else:
            filter_set = FilterSet.from_mapping(filters)

        # "van" and "DRY_VAN" must select the same assets
        if filter_set.type is not None:
            filter_set = filter_set.with_type(self.classifier.classify_type(filter_set.type))
        return filter_set

    def _fetch_assets(self, filter_set: FilterSet, active_only: bool) -> List[Any]:
        fetch = self.coordinator.fetch(
            {"assets": lambda store: store.fetch_assets(filter_set, active_only=active_only)},
        )
        return fetch.primary["assets"]

    def _classify(self, records: Iterable[Any], filter_set: FilterSet) -> List[ClassifiedRecord]:
        now = self.classifier.reference_date()
        classified = (self.classifier.classify_record(r, now) for r in records)
        return [c for c in classified if filter_set.matches(c.labels)]

    def _idle_records(self, report: str, filters: Filters, period: Optional[str] = None) -> List[ClassifiedRecord]:
        filter_set = self._filters(filters)
        return self._export_records(
            report, "idle", lambda store: store.fetch_idle_snapshot(period, filter_set), filter_set,
        )

    def _export_records(
        self, report: str, name: str, query: Callable[[Any], Any], filter_set: FilterSet,
    ) -> List[ClassifiedRecord]:
        fetch = self.coordinator.fetch({}, {name: query})
        result = fetch.secondary[name]
        if not result.ok:
            # An export has nothing to degrade to
            raise SourceError("analytics", f"{report} export unavailable: {result.unavailable.reason}")
        return self._classify(result.value, filter_set)

    def _secondary(self, fetch: CoordinatedFetch, name: str, build: Callable[[Any], Any]) -> Any:
        result: SourceResult = fetch.secondary[name]
        if not result.ok:
            return None
        return build(result.value)

    def _analytics_response(
        self, name: str, payload: Any, fetch: CoordinatedFetch, filter_set: FilterSet,
    ) -> Dict[str, Any]:
        result = fetch.secondary[name]
        response = {
            "available": result.ok,
            "data": payload,
            "sources": fetch.sources(),
            "degraded": fetch.degraded,
            "filters": filter_set.to_dict(),
        }
        if not result.ok and self.debug:
            response["reason"] = result.unavailable.reason
        return response

    def _bucket_row(self, bucket: AggregateBucket) -> Dict[str, Any]:
        row = bucket.to_dict()
        row["status"] = self.metrics.utilization_status(bucket.utilization).value
        return row

    def _trend_series(self, dimension: str, rows: List[PeriodRow], filter_set: FilterSet) -> List[Dict[str, Any]]:
        # Regroup by canonical label: several raw types can share one bucket
        merged: Dict[str, Dict[str, List[int]]] = {}
        for row in rows:
            group = self._canonical_group(dimension, row.group)
            labels = {dimension: group}
            if filter_set.type is not None and dimension != "type":
                labels["type"] = self.classifier.classify_type(row.type)
            if filter_set.usage is not None and dimension != "usage":
                labels["usage"] = self.classifier.resolve_usage(row.usage)
            if not filter_set.matches(labels):
                continue
            counts = merged.setdefault(group, {}).setdefault(row.period, [0, 0])
            counts[0] += row.total
            counts[1] += row.leased

        series = []
        for group in sorted(merged):
            points = [
                PeriodRow(period=period, group=group, total=total, leased=leased)
                for period, (total, leased) in sorted(merged[group].items())
            ]
            util_delta = month_over_month(points, value=lambda p: utilization(p.total, p.leased))
            unit_delta = month_over_month(points, value=lambda p: float(p.total))
            unit_growth = growth(unit_delta.current, unit_delta.previous) if unit_delta else None
            series.append({
                "group": group,
                "points": [
                    {
                        "period": p.period,
                        "total": p.total,
                        "leased": p.leased,
                        "utilization": utilization(p.total, p.leased),
                    }
                    for p in points
                ],
                "month_over_month": util_delta.to_dict() if util_delta else None,
                "unit_growth": unit_growth,
                "growth_status": self.metrics.growth_status(unit_growth).value,
            })
        return series

    def _canonical_group(self, dimension: str, value: str) -> str:
        if dimension == "type":
            return self.classifier.classify_type(value)
        if dimension == "usage":
            return self.classifier.resolve_usage(value)
        return self.classifier.resolve_branch(value)

    def _non_empty(self, report: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            raise NoDataError(report)
        logger.info("✓ Exported %d %s rows", len(rows), report)
        return rows
