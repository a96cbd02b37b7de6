# ==============================================
# Aggregator
# ==============================================
#
# PURPOSE:
#   Group classified asset records by one or two dimensions and
#   count total / leased / available per group.
#
# CLASS: Aggregator
# -----------------
#   Stateless — every call builds its own MultiGrouper.
#
#   Constructor:
#   ------------
#   - __init__(classifier: AssetClassifier)
#       One shared classifier so every grouping applies the same rules.
#
#   Methods:
#   --------
#   - aggregate(records, dimensions, active_only=True, filters=None)
#         -> list[AggregateBucket]
#       RULE 1: 1 or 2 dimensions from DIMENSIONS, else ValueError
#       RULE 2: inactive assets dropped unless active_only=False
#       RULE 3: FilterSet applied after classification
#       Output is sparse and sorted by key tuple.
#
#   - aggregate_many(records, groupings, ...) -> AggregationResult
#       Every grouping from one scan, plus global totals.
#
#   - fleet_overview(records, filters=None) -> AggregationResult
#       branch, type, usage, length and type x usage in one scan.
#
# ==============================================

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from fleet_analytics.classification import AssetClassifier
from fleet_analytics.filters import FilterSet

from .grouping import CountAccumulator, MultiGrouper
from .metrics import utilization

DIMENSIONS = ("branch", "type", "usage", "length", "status")
MAX_DIMENSIONS = 2

OVERVIEW_GROUPINGS: Tuple[Tuple[str, ...], ...] = (
    ("branch",),
    ("type",),
    ("usage",),
    ("length",),
    ("type", "usage"),
)


@dataclass(frozen=True)
class AggregateBucket:
    """Counts for one group. Utilization is derived, never stored."""

    dimensions: Tuple[str, ...]
    values: Tuple[str, ...]
    total_count: int = 0
    leased_count: int = 0
    available_count: int = 0

    @property
    def key(self) -> Dict[str, str]:
        return dict(zip(self.dimensions, self.values))

    @property
    def utilization(self) -> Optional[float]:
        return utilization(self.total_count, self.leased_count)

    def to_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = dict(self.key)
        row.update({
            "total": self.total_count,
            "leased": self.leased_count,
            "available": self.available_count,
            "utilization": self.utilization,
        })
        return row


@dataclass
class AggregationResult:
    """Several groupings of one population, plus its global totals."""

    groupings: Dict[Tuple[str, ...], List[AggregateBucket]] = field(default_factory=dict)
    totals: AggregateBucket = field(default_factory=lambda: AggregateBucket((), ()))
    rules_version: Optional[str] = None

    def breakdown(self, *dimensions: str) -> List[AggregateBucket]:
        return self.groupings[tuple(dimensions)]


class Aggregator:
    """
    Multi-dimensional counts over the active fleet.

    Records may be raw AssetRecords or already-classified records; raw ones
    are classified on the way in with one reference date for the batch.
    """

    def __init__(self, classifier: Optional[AssetClassifier] = None):
        self.classifier = classifier or AssetClassifier()

    def aggregate(
        self,
        records: Iterable[Any],
        dimensions: Sequence[str],
        active_only: bool = True,
        filters: Optional[FilterSet] = None,
        now=None,
    ) -> List[AggregateBucket]:
        """
        Count records per combination of one or two dimensions.

        Args:
            records: AssetRecords or ClassifiedRecords
            dimensions: One or two names from DIMENSIONS
            active_only: Drop assets that are neither AVAILABLE nor LEASED
            filters: Optional FilterSet narrowing the population
            now: Reference date for usage buckets

        Returns:
            Non-empty groups only, sorted by key tuple

        Raises:
            ValueError: On an unknown dimension or a bad dimension count
        """
        grouping = validate_dimensions(dimensions)
        result = self.aggregate_many(records, [grouping], active_only, filters, now)
        return result.groupings[grouping]

    def aggregate_many(
        self,
        records: Iterable[Any],
        groupings: Sequence[Sequence[str]],
        active_only: bool = True,
        filters: Optional[FilterSet] = None,
        now=None,
    ) -> AggregationResult:
        """
        Compute several groupings from one scan of ``records``.

        Every grouping partitions the same filtered population, so each
        grouping's totals add up to the global totals.
        """
        validated = [validate_dimensions(g) for g in groupings]
        now = self.classifier.reference_date(now)
        grouper = MultiGrouper(validated, CountAccumulator)

        for record in records:
            classified = self.classifier.classify_record(record, now)
            if active_only and not classified.is_active:
                continue
            if filters is not None and not filters.matches(classified.labels):
                continue
            grouper.add(classified.labels, classified)

        result = AggregationResult(rules_version=self.classifier.rules.version)
        for grouping in validated:
            result.groupings[grouping] = [
                _to_bucket(grouping, key, counts)
                for key, counts in grouper.results(grouping)
            ]
        result.totals = _to_bucket((), (), grouper.totals)
        return result

    def fleet_overview(
        self,
        records: Iterable[Any],
        filters: Optional[FilterSet] = None,
        now=None,
    ) -> AggregationResult:
        active_only = filters is None or filters.active_only
        return self.aggregate_many(records, OVERVIEW_GROUPINGS, active_only, filters, now)


def validate_dimensions(dimensions: Sequence[str]) -> Tuple[str, ...]:
    if isinstance(dimensions, str):
        dimensions = (dimensions,)
    dims = tuple(dimensions)
    if not 1 <= len(dims) <= MAX_DIMENSIONS:
        raise ValueError(
            f"Expected 1 to {MAX_DIMENSIONS} dimensions, got {len(dims)}"
        )
    unknown = [d for d in dims if d not in DIMENSIONS]
    if unknown:
        raise ValueError(
            f"Unknown dimension(s) {unknown}. Expected any of: {', '.join(DIMENSIONS)}"
        )
    if len(set(dims)) != len(dims):
        raise ValueError(f"Duplicate dimension in {list(dims)}")
    return dims


def _to_bucket(grouping, key, counts: CountAccumulator) -> AggregateBucket:
    return AggregateBucket(
        dimensions=tuple(grouping),
        values=tuple(key),
        total_count=counts.total,
        leased_count=counts.leased,
        available_count=counts.available,
    )
