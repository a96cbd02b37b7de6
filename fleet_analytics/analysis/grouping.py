# ==============================================
# MultiGrouper
# ==============================================
#
# PURPOSE:
#   Observe a stream of labeled records ONCE and accumulate
#   several group-by maps side by side.
#
# WHY THIS CLASS EXISTS:
#   The dashboard needs the same population broken down by branch,
#   by type, by usage, by length and by type x usage. Scanning the
#   records once per grouping would repeat the classification and
#   filtering work; this class feeds every grouping from one scan.
#
# CLASS: MultiGrouper
# -------------------
#   Stateful — accumulates across add() calls.
#
#   Constructor:
#   ------------
#   - __init__(groupings: list[tuple[str, ...]], accumulator_factory)
#       Each grouping is a tuple of label names, e.g. ("type", "usage").
#       accumulator_factory() builds a fresh accumulator per group.
#
#   Methods:
#   --------
#   - add(labels: dict, item) -> None
#       Route one item into every grouping's accumulator for its key.
#
#   - consume(items, labels_of) -> MultiGrouper
#       add() for a whole iterable.
#
#   - results(grouping) -> list[(key_tuple, accumulator)]
#       Groups of one grouping, sorted by key tuple.
#
#   - totals -> accumulator
#       Accumulator over every item added (global totals).
#
# Any accumulator works as long as it has add(item).
#
# ==============================================

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

Grouping = Tuple[str, ...]
GroupKey = Tuple[str, ...]


class MultiGrouper:
    """
    Single-pass accumulation into parallel group-by maps.

    Keys are tuples of label values in the order the grouping names them.
    """

    def __init__(
        self,
        groupings: Sequence[Sequence[str]],
        accumulator_factory: Callable[[], Any],
    ):
        """
        Initialize the grouper.

        Args:
            groupings: Label-name tuples, one per requested breakdown
            accumulator_factory: Zero-argument callable returning an accumulator
        """
        self.groupings: List[Grouping] = [tuple(g) for g in groupings]
        self._factory = accumulator_factory
        self._groups: Dict[Grouping, Dict[GroupKey, Any]] = {g: {} for g in self.groupings}
        self.totals = accumulator_factory()
        self.count = 0

    def add(self, labels: Mapping[str, str], item: Any) -> None:
        """
        Route one item into every grouping.

        Args:
            labels: The item's label map (dimension → value)
            item: Whatever the accumulators expect
        """
        # Step 1: Global totals
        self.totals.add(item)
        self.count += 1

        # Step 2: One accumulator per (grouping, key)
        for grouping, groups in self._groups.items():
            key = tuple(labels[name] for name in grouping)
            accumulator = groups.get(key)
            if accumulator is None:
                accumulator = groups[key] = self._factory()
            accumulator.add(item)

    def consume(
        self,
        items: Iterable[Any],
        labels_of: Callable[[Any], Mapping[str, str]],
    ) -> "MultiGrouper":
        for item in items:
            self.add(labels_of(item), item)
        return self

    def results(self, grouping: Sequence[str]) -> List[Tuple[GroupKey, Any]]:
        """
        Return the groups of one grouping in key order.

        Args:
            grouping: One of the groupings given to the constructor

        Returns:
            List of (key_tuple, accumulator), sorted by key tuple
        """
        groups = self._groups[tuple(grouping)]
        return sorted(groups.items(), key=lambda entry: entry[0])


@dataclass
class CountAccumulator:
    """Active-fleet counts for one group."""

    total: int = 0
    leased: int = 0
    available: int = 0

    def add(self, item: Any) -> None:
        self.total += 1
        if item.is_leased:
            self.leased += 1
        elif item.is_available:
            self.available += 1
