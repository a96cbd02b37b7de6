# ==============================================
# Tests for Filters
# ==============================================
#
# FilterSet parsing and matching, and the revenue Period windows.
# ==============================================

from datetime import date

import pytest

from fleet_analytics.filters import FilterSet, Period


class TestFilterSetFromMapping:

    def test_empty_is_unconstrained(self):
        filters = FilterSet.from_mapping({})
        assert not filters.is_constrained()
        assert filters.active_only
        assert filters.period is Period.LTM

    def test_all_and_blank_mean_unconstrained(self):
        filters = FilterSet.from_mapping({"branch": "all", "type": "ALL", "usage": "  ", "period": "all"})
        assert filters == FilterSet()

    def test_values_are_cleaned(self):
        filters = FilterSet.from_mapping({"branch": " Dallas ", "usage": "otr_1", "status": "sold"})
        assert filters.branch == "Dallas"
        assert filters.usage == "OTR_1"
        assert filters.status == "SOLD"
        assert not filters.active_only

    @pytest.mark.parametrize("key", ["idleBucket", "idle_bucket"])
    def test_idle_bucket_keys(self, key):
        assert FilterSet.from_mapping({key: "6-12 Months"}).idle_bucket == "6-12"

    def test_unknown_idle_bucket(self):
        with pytest.raises(ValueError):
            FilterSet.from_mapping({"idle_bucket": "forever"})

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            FilterSet.from_mapping({"period": "L2Y"})

    def test_to_dict(self):
        filters = FilterSet.from_mapping({"branch": "Dallas", "period": "lqa"})
        assert filters.to_dict() == {
            "branch": "Dallas",
            "type": None,
            "usage": None,
            "idle_bucket": None,
            "period": "LQA",
            "status": None,
        }


class TestFilterSetMatches:

    def test_branch_case_insensitive(self):
        assert FilterSet(branch="dallas").matches({"branch": "Dallas"})
        assert not FilterSet(branch="dallas").matches({"branch": "Houston"})

    def test_missing_dimension_is_not_checked(self):
        """Assets carry no idle bucket; the constraint is skipped for them."""
        assert FilterSet(idle_bucket="24+").matches({"branch": "Dallas", "type": "DRY_VAN"})

    def test_every_constraint_must_hold(self):
        labels = {"branch": "Dallas", "type": "DRY_VAN", "usage": "OTR_0"}
        assert FilterSet(branch="Dallas", type="DRY_VAN").matches(labels)
        assert not FilterSet(branch="Dallas", type="REEFER").matches(labels)
        assert not FilterSet(usage="OTR_1").matches(labels)

    def test_idle_bucket_label_or_value(self):
        assert FilterSet(idle_bucket="24+").matches({"idle_bucket": "24+ Months"})

    def test_status_matches_raw_status(self):
        labels = {"status": "OTHER", "raw_status": "SOLD"}
        assert FilterSet(status="SOLD").matches(labels)
        assert FilterSet(status="OTHER").matches(labels)
        assert not FilterSet(status="RETIRED").matches(labels)
        assert not FilterSet(status="LEASED").matches(labels)

    def test_with_type(self):
        assert FilterSet(type="van").with_type("DRY_VAN").type == "DRY_VAN"

    def test_constraint(self):
        filters = FilterSet(branch="Dallas")
        assert filters.constraint("branch") == "Dallas"
        assert filters.constraint("length") is None


class TestPeriod:

    @pytest.mark.parametrize("period, today, expected", [
        (Period.LTM, date(2026, 6, 15), date(2025, 6, 15)),
        (Period.YTD, date(2026, 6, 15), date(2026, 1, 1)),
        (Period.L3M, date(2026, 6, 15), date(2026, 3, 15)),
        (Period.LQA, date(2026, 6, 15), date(2026, 3, 15)),
        (Period.L6M, date(2026, 2, 10), date(2025, 8, 10)),
        (Period.L3M, date(2026, 5, 31), date(2026, 2, 28)),
        (Period.LTM, date(2024, 2, 29), date(2023, 2, 28)),
    ])
    def test_start_date(self, period, today, expected):
        assert period.start_date(today) == expected

    def test_annualization(self):
        assert Period.LQA.annualization_factor == 4
        assert Period.LTM.annualization_factor == 1

    def test_parse(self):
        assert Period.parse(None) is Period.LTM
        assert Period.parse("ytd") is Period.YTD
        assert Period.parse(Period.L6M) is Period.L6M
        assert Period.LQA.label == "Last Quarter (Annualized)"
