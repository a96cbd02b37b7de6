# ==============================================
# ANALYSIS
# ==============================================
#
# Turns classified records into counts, ratios and statuses.
#
# Modules:
# --------
# - grouping.py   → MultiGrouper: several group-by maps from one scan
# - aggregator.py → Fleet counts by 1-2 dimensions, fleet overview
# - metrics.py    → Utilization / variance / idle / growth grading, M-o-M
# - summaries.py  → Idle and revenue rollups of analytics snapshots
#
# ==============================================

from .grouping import CountAccumulator, MultiGrouper
from .metrics import (
    MetricThresholds,
    MetricsEngine,
    PeriodDelta,
    Status,
    growth,
    month_over_month,
    rate_variance,
    utilization,
)
from .aggregator import (
    DIMENSIONS,
    OVERVIEW_GROUPINGS,
    AggregateBucket,
    AggregationResult,
    Aggregator,
    validate_dimensions,
)
from .summaries import (
    IdleReport,
    IdleSummary,
    RevenueReport,
    RevenueSummary,
    summarize_idle,
    summarize_revenue,
    variance_bucket,
    variance_buckets,
    rank_critical_idle,
    rank_never_leased,
)

__all__ = [
    "CountAccumulator",
    "MultiGrouper",
    "MetricThresholds",
    "MetricsEngine",
    "PeriodDelta",
    "Status",
    "growth",
    "month_over_month",
    "rate_variance",
    "utilization",
    "DIMENSIONS",
    "OVERVIEW_GROUPINGS",
    "AggregateBucket",
    "AggregationResult",
    "Aggregator",
    "validate_dimensions",
    "IdleReport",
    "IdleSummary",
    "RevenueReport",
    "RevenueSummary",
    "summarize_idle",
    "summarize_revenue",
    "variance_bucket",
    "variance_buckets",
    "rank_critical_idle",
    "rank_never_leased",
]
