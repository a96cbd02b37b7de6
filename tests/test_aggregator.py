# ==============================================
# Tests for Aggregator and MultiGrouper
# ==============================================
#
# Fleet counts by one or two dimensions, the single-scan
# overview, and the partition / ordering guarantees.
# ==============================================

import pytest
from hypothesis import given, settings, strategies as st

from fleet_analytics.analysis import (
    OVERVIEW_GROUPINGS,
    Aggregator,
    CountAccumulator,
    MetricsEngine,
    MultiGrouper,
    validate_dimensions,
)
from fleet_analytics.classification import AssetClassifier
from fleet_analytics.filters import FilterSet

from conftest import TODAY, asset

AGGREGATOR = Aggregator(AssetClassifier(clock=lambda: TODAY))

ASSETS = st.lists(
    st.builds(
        asset,
        unit=st.text(min_size=1, max_size=6),
        status=st.sampled_from(["LEASED", "AVAILABLE", "SOLD", "IN SHOP"]),
        raw_type=st.one_of(st.none(), st.sampled_from(["VAN", "dry van", "Reefer", "LIFTGATE", "Chassis", "tanker"])),
        model_year=st.one_of(st.none(), st.just("n/a"), st.integers(min_value=1980, max_value=2030)),
        raw_length=st.one_of(st.none(), st.integers(min_value=0, max_value=60), st.sampled_from(["53'", "48", "abc"])),
        branch=st.sampled_from(["Dallas", "Houston", None]),
    ),
    max_size=40,
)


# ==============================================
# Test Fixtures
# ==============================================

@pytest.fixture
def aggregator(classifier):
    return Aggregator(classifier)


@pytest.fixture
def vans():
    """Ten vans: six leased, four available."""
    return (
        [asset(f"L{i}", "LEASED", "VAN") for i in range(6)]
        + [asset(f"A{i}", "AVAILABLE", "VAN") for i in range(4)]
    )


# ==============================================
# aggregate()
# ==============================================

class TestAggregate:

    def test_single_type_bucket(self, aggregator, vans):
        """Six of ten vans leased: one DRY_VAN group at 60% utilization."""
        buckets = aggregator.aggregate(vans, ["type"])

        assert len(buckets) == 1
        bucket = buckets[0]
        assert bucket.key == {"type": "DRY_VAN"}
        assert bucket.total_count == 10
        assert bucket.leased_count == 6
        assert bucket.available_count == 4
        assert bucket.utilization == pytest.approx(0.6)
        assert MetricsEngine().utilization_status(bucket.utilization).value == "warning"

    def test_missing_attributes_still_counted(self, aggregator):
        """A null type and an unreadable year land in fallback buckets, never dropped."""
        record = asset("X", "LEASED", None, "n/a")

        by_type = aggregator.aggregate([record], ["type"])
        by_usage = aggregator.aggregate([record], ["usage"])

        assert [(b.values, b.total_count) for b in by_type] == [(("SPECIALTY",), 1)]
        assert [(b.values, b.total_count) for b in by_usage] == [(("STORAGE",), 1)]

    def test_inactive_assets_dropped(self, aggregator, sample_fleet):
        buckets = aggregator.aggregate(sample_fleet, ["branch"])
        totals = {b.values[0]: b.total_count for b in buckets}
        assert totals == {"Dallas": 3, "Houston": 2}

    def test_inactive_assets_kept_on_request(self, aggregator, sample_fleet):
        buckets = aggregator.aggregate(sample_fleet, ["status"], active_only=False)
        totals = {b.values[0]: b.total_count for b in buckets}
        assert totals == {"AVAILABLE": 2, "LEASED": 3, "OTHER": 1}

    def test_two_dimensions_sparse_and_sorted(self, aggregator, sample_fleet):
        buckets = aggregator.aggregate(sample_fleet, ["branch", "type"])
        keys = [b.values for b in buckets]

        assert keys == sorted(keys)
        assert ("Dallas", "DRY_VAN") in keys
        assert ("Houston", "DRY_VAN") not in keys
        assert all(b.total_count > 0 for b in buckets)

    def test_filters_applied_after_classification(self, aggregator, sample_fleet):
        buckets = aggregator.aggregate(sample_fleet, ["type"], filters=FilterSet(type="DRY_VAN"))
        assert [(b.values, b.total_count, b.leased_count) for b in buckets] == [(("DRY_VAN",), 2, 1)]

    def test_branch_filter(self, aggregator, sample_fleet):
        buckets = aggregator.aggregate(sample_fleet, "length", filters=FilterSet(branch="houston"))
        assert {b.values[0]: b.total_count for b in buckets} == {"28-32": 1, "53": 1}

    def test_empty_input(self, aggregator):
        assert aggregator.aggregate([], ["type"]) == []

    def test_to_dict(self, aggregator, vans):
        row = aggregator.aggregate(vans, ["type"])[0].to_dict()
        assert row == {"type": "DRY_VAN", "total": 10, "leased": 6, "available": 4, "utilization": 0.6}

    @pytest.mark.parametrize("dimensions", [
        [],
        ["branch", "type", "usage"],
        ["color"],
        ["type", "type"],
    ])
    def test_invalid_dimensions(self, aggregator, vans, dimensions):
        with pytest.raises(ValueError):
            aggregator.aggregate(vans, dimensions)

    def test_validate_dimensions_accepts_string(self):
        assert validate_dimensions("usage") == ("usage",)


# ==============================================
# aggregate_many() / fleet_overview()
# ==============================================

class TestAggregateMany:

    def test_fleet_overview(self, aggregator, sample_fleet):
        result = aggregator.fleet_overview(sample_fleet)

        assert set(result.groupings) == set(OVERVIEW_GROUPINGS)
        assert result.totals.total_count == 5
        assert result.totals.leased_count == 3
        assert result.rules_version == "1"
        assert {b.values[0] for b in result.breakdown("usage")} == {"OTR_0", "OTR_2", "CART_1", "CART_2", "STORAGE"}

    def test_overview_with_status_filter(self, aggregator, sample_fleet):
        """An explicit status audits that status alone, inactive ones included."""
        result = aggregator.fleet_overview(sample_fleet, FilterSet(status="SOLD"))
        assert result.totals.total_count == 1
        assert [b.values for b in result.breakdown("branch")] == [("Houston",)]

    @given(ASSETS)
    @settings(max_examples=60, deadline=None)
    def test_every_grouping_partitions_the_totals(self, records):
        result = AGGREGATOR.aggregate_many(records, OVERVIEW_GROUPINGS)
        for grouping, buckets in result.groupings.items():
            assert sum(b.total_count for b in buckets) == result.totals.total_count, grouping
            assert sum(b.leased_count for b in buckets) == result.totals.leased_count, grouping
        assert result.totals.total_count == sum(1 for r in records if r.is_active)

    @given(st.data(), ASSETS)
    @settings(max_examples=40, deadline=None)
    def test_input_order_does_not_matter(self, data, records):
        shuffled = data.draw(st.permutations(records))
        for grouping in OVERVIEW_GROUPINGS:
            assert AGGREGATOR.aggregate(records, grouping) == AGGREGATOR.aggregate(shuffled, grouping)

    @given(ASSETS)
    @settings(max_examples=60, deadline=None)
    def test_utilization_in_range(self, records):
        for bucket in AGGREGATOR.aggregate(records, ["branch", "type"]):
            assert 0.0 <= bucket.utilization <= 1.0


# ==============================================
# MultiGrouper
# ==============================================

class TestMultiGrouper:

    def test_one_scan_many_groupings(self, classifier, sample_fleet):
        grouper = MultiGrouper([("branch",), ("type", "usage")], CountAccumulator)
        classified = classifier.classify_batch(sample_fleet)
        grouper.consume(classified, lambda c: c.labels)

        assert grouper.count == 6
        assert grouper.totals.total == 6
        assert [key for key, _ in grouper.results(("branch",))] == [("Dallas",), ("Houston",)]
        assert sum(acc.total for _, acc in grouper.results(("type", "usage"))) == 6

    def test_count_accumulator(self, classifier):
        counts = CountAccumulator()
        for record in (asset("A", "LEASED"), asset("B", "AVAILABLE"), asset("C", "SOLD")):
            counts.add(classifier.classify_asset(record))
        assert (counts.total, counts.leased, counts.available) == (3, 1, 1)
