# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fixtures for all tests.
#
# FIXTURES:
# ---------
# - classifier / metrics       → Classifier pinned to TODAY, default grading
# - asset() / idle() / revenue()
#                              → Record factories (imported by test modules)
# - inventory / analytics      → In-memory stand-ins for the two stores
# - coordinator / dashboard    → Wired over the in-memory stores
#
# NOTES:
# ------
# - No database is needed; the stores are replaced by fakes that
#   record which queries ran.
# - Storage tests that exercise real SQL use an in-memory SQLite
#   engine (see test_storage.py).
# ==============================================

import threading
from datetime import date
from typing import Any, List, Optional

import pytest

from fleet_analytics.analysis import MetricsEngine
from fleet_analytics.classification import AssetClassifier
from fleet_analytics.config import AppConfig, DashboardConfig
from fleet_analytics.coordination import SourceCoordinator
from fleet_analytics.dashboard import FleetDashboard
from fleet_analytics.filters import FilterSet
from fleet_analytics.models import AssetRecord, AssetStatus, IdleRecord, PeriodRow, RevenueRecord

TODAY = date(2026, 6, 15)


# ==============================================
# Record factories
# ==============================================

def asset(
    unit: str = "U1",
    status: str = "LEASED",
    raw_type: Optional[str] = "VAN",
    model_year: Any = 2024,
    raw_length: Any = "53'",
    branch: Optional[str] = "Dallas",
    cost: Optional[float] = 30000.0,
) -> AssetRecord:
    return AssetRecord(
        unit=unit,
        branch=branch,
        status=AssetStatus.parse(status),
        raw_status=status,
        raw_type=raw_type,
        raw_length=raw_length,
        model_year=model_year,
        cost=cost,
    )


def idle(
    unit: str = "I1",
    months_idle: Optional[float] = 3,
    branch: Optional[str] = "Dallas",
    cumulative_leases: int = 2,
    asset_cost: Optional[float] = 25000.0,
    card_rate: Optional[float] = 800.0,
    raw_type: Optional[str] = "DRY_VAN",
    raw_usage: Optional[str] = "OTR_1",
    raw_length: Any = "53",
    period: str = "2026-05",
) -> IdleRecord:
    return IdleRecord(
        unit=unit,
        branch=branch,
        period=period,
        months_idle=months_idle,
        cumulative_leases=cumulative_leases,
        asset_cost=asset_cost,
        card_rate=card_rate,
        raw_type=raw_type,
        raw_usage=raw_usage,
        raw_length=raw_length,
    )


def revenue(
    unit: str = "R1",
    billed_rate: Optional[float] = 1000.0,
    card_rate: Optional[float] = 1000.0,
    branch: Optional[str] = "Dallas",
    billing_stop_date: date = date(2026, 5, 31),
    raw_type: Optional[str] = "DRY_VAN",
    raw_usage: Optional[str] = "OTR_0",
    raw_length: Any = "53",
) -> RevenueRecord:
    return RevenueRecord(
        unit=unit,
        branch=branch,
        billed_rate=billed_rate,
        card_rate=card_rate,
        billing_stop_date=billing_stop_date,
        raw_type=raw_type,
        raw_usage=raw_usage,
        raw_length=raw_length,
    )


# ==============================================
# In-memory stores
# ==============================================

class FakeInventoryStore:
    """Answers like InventoryStore from a list of AssetRecords."""

    def __init__(self, assets: Optional[List[AssetRecord]] = None, pool_size: int = 4):
        self.assets = list(assets or [])
        self.branches: List[str] = []
        self.pool_size = pool_size
        self.error: Optional[Exception] = None
        self.block: Optional[threading.Event] = None
        self.calls: List[str] = []

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error

    def fetch_assets(self, filters: Optional[FilterSet] = None, active_only: bool = True):
        self._enter("fetch_assets")
        filters = filters or FilterSet()
        rows = []
        for record in self.assets:
            if filters.status is not None:
                if (record.raw_status or "").upper() != filters.status.upper() and record.status.value != filters.status:
                    continue
            elif active_only and not record.is_active:
                continue
            if filters.branch is not None and (record.branch or "").lower() != filters.branch.lower():
                continue
            rows.append(record)
        return rows

    def fetch_active_fleet(self, filters: Optional[FilterSet] = None):
        return self.fetch_assets(filters, active_only=True)

    def fetch_branches(self):
        self._enter("fetch_branches")
        return list(self.branches)

    def connect(self):
        self.connected = True

    def disconnect(self):
        self.connected = False


class FakeAnalyticsStore:
    """Answers like AnalyticsStore from in-memory lists."""

    def __init__(self, pool_size: int = 3):
        self.idle: List[IdleRecord] = []
        self.revenue: List[RevenueRecord] = []
        self.series: List[PeriodRow] = []
        self.pool_size = pool_size
        self.error: Optional[Exception] = None
        self.block: Optional[threading.Event] = None
        self.calls: List[str] = []

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error

    def connect(self):
        self.connected = True

    def disconnect(self):
        self.connected = False

    def ping(self):
        self._enter("ping")
        return True

    def latest_period(self):
        self._enter("latest_period")
        periods = [r.period for r in self.idle if r.period]
        return max(periods) if periods else None

    def fetch_idle_snapshot(self, period=None, filters=None):
        self._enter("fetch_idle_snapshot")
        periods = [r.period for r in self.idle if r.period]
        period = period or (max(periods) if periods else None)
        return [r for r in self.idle if r.period == period]

    def fetch_revenue_snapshot(self, period=None, filters=None, today=None):
        self._enter("fetch_revenue_snapshot")
        return list(self.revenue)

    def fetch_period_series(self, dimension, last_n_periods=12, filters=None):
        self._enter("fetch_period_series")
        keep = set(sorted({r.period for r in self.series}, reverse=True)[:last_n_periods])
        return [r for r in self.series if r.period in keep]


# ==============================================
# Wiring
# ==============================================

@pytest.fixture
def classifier():
    return AssetClassifier(clock=lambda: TODAY)


@pytest.fixture
def metrics():
    return MetricsEngine()


@pytest.fixture
def inventory():
    return FakeInventoryStore()


@pytest.fixture
def analytics():
    return FakeAnalyticsStore()


@pytest.fixture
def coordinator(inventory, analytics):
    coordinator = SourceCoordinator(inventory, analytics, primary_timeout=2.0, secondary_timeout=0.5)
    yield coordinator
    coordinator.close()


@pytest.fixture
def app_config():
    return AppConfig(dashboard=DashboardConfig(app_env="development", critical_idle_limit=25, trend_periods=12))


@pytest.fixture
def dashboard(coordinator, classifier, metrics, app_config):
    return FleetDashboard(
        coordinator,
        classifier=classifier,
        metrics=metrics,
        config=app_config,
        clock=lambda: TODAY,
    )


@pytest.fixture
def sample_fleet():
    """Two branches, mixed types, one sold asset."""
    return [
        asset("D1", "LEASED", "VAN", 2024, "53'", "Dallas"),
        asset("D2", "AVAILABLE", "DRY VAN", 2019, "53", "Dallas"),
        asset("D3", "LEASED", "REEFER", 2015, "48", "Dallas"),
        asset("H1", "LEASED", "LIFTGATE", 2010, "28", "Houston"),
        asset("H2", "AVAILABLE", None, "n/a", "abc", "Houston"),
        asset("H3", "SOLD", "VAN", 2005, "53", "Houston"),
    ]
