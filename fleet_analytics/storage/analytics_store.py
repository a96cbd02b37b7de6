# ==============================================
# AnalyticsStore
# ==============================================
#
# PURPOSE:
#   Read access to the secondary analytics database (MongoDB):
#   monthly idle-asset snapshots, invoice lines with card rates,
#   and the per-month fleet history behind the trend charts.
#
# WHY THIS CLASS EXISTS:
#   These figures enrich a response but never gate it. The store
#   raises on failure like any client; the SourceCoordinator is
#   what turns those failures into Unavailable results.
#
# CLASS: AnalyticsStore
# ---------------------
#   Stateful — holds a pymongo MongoClient (its own pool).
#
#   Constructor:
#   ------------
#   - __init__(host, port, database, user=None, password=None,
#              pool_size=5, query_timeout_seconds=30, ...)
#       Store connection params. Don't connect yet.
#
#   Methods:
#   --------
#   - connect() / disconnect() / ping()
#   - latest_period() -> str | None
#   - fetch_idle_snapshot(period, filters) -> list[IdleRecord]
#       period None = latest snapshot month.
#   - fetch_revenue_snapshot(period, filters) -> list[RevenueRecord]
#       Invoice lines whose billing stop date falls in the window.
#   - fetch_period_series(dimension, last_n_periods, filters)
#         -> list[PeriodRow]
#       Fleet totals per (month, group) for the last N months.
#
# COLLECTIONS (one document per view row):
# ----------------------------------------
#   idle_assets      → MonthStr, Unit, Branch, TypeBucket, UsageCategory,
#                      LengthBucket, YearRange, AssetCost, MonthsIdle,
#                      LastActiveMonth, CumulativeLeases, CardRate
#   revenue_details  → UnitNumber, Branch, TypeBucket, UsageCategory,
#                      LengthBucket, YearRange, BilledMonthlyRate,
#                      CardRateMonth, BillingStopDate
#   fleet_history    → MonthStr, Branch, TypeBucket, UsageCategory,
#                      TotalUnits, LeasedUnits
#
# ==============================================

import logging
import re
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from pymongo import DESCENDING
from pymongo import MongoClient as PyMongoClient

from fleet_analytics.filters import FilterSet, Period
from fleet_analytics.models import IdleRecord, PeriodRow, RevenueRecord
from fleet_analytics.normalization import RowNormalizer

logger = logging.getLogger(__name__)

# Trend dimension → field in the history collection
SERIES_FIELDS = {
    "branch": "Branch",
    "type": "TypeBucket",
    "usage": "UsageCategory",
}


def validate_series(dimension: str, last_n_periods: int) -> None:
    if dimension not in SERIES_FIELDS:
        raise ValueError(
            f"Unknown trend dimension '{dimension}'. Expected one of: {', '.join(SERIES_FIELDS)}"
        )
    if last_n_periods < 1:
        raise ValueError("last_n_periods must be at least 1")


class AnalyticsStore:
    def __init__(
        self,
        host: str = "localhost",
        port: int = 27017,
        database: str = "fleet_analytics",
        user: Optional[str] = None,
        password: Optional[str] = None,
        pool_size: int = 5,
        query_timeout_seconds: float = 30.0,
        idle_collection: str = "idle_assets",
        revenue_collection: str = "revenue_details",
        history_collection: str = "fleet_history",
        client: Optional[Any] = None,
    ):
        # Store connection params. Don't connect yet.
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.query_timeout_seconds = query_timeout_seconds
        self.idle_collection = idle_collection
        self.revenue_collection = revenue_collection
        self.history_collection = history_collection
        self.client = client
        self.row_normalizer = RowNormalizer()

    @classmethod
    def from_config(cls, config) -> "AnalyticsStore":
        return cls(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.user,
            password=config.password,
            pool_size=config.pool_size,
            query_timeout_seconds=config.query_timeout_seconds,
            idle_collection=config.idle_collection,
            revenue_collection=config.revenue_collection,
            history_collection=config.history_collection,
        )

    @property
    def max_time_ms(self) -> int:
        return int(self.query_timeout_seconds * 1000)

    def connect(self) -> None:
        # MongoClient connects lazily; nothing here touches the network
        if self.client is not None:
            return

        if self.user and self.password:
            credentials = f"{quote_plus(self.user)}:{quote_plus(self.password)}"
            uri = f"mongodb://{credentials}@{self.host}:{self.port}/{self.database}"
        else:
            uri = f"mongodb://{self.host}:{self.port}/{self.database}"

        self.client = PyMongoClient(
            uri,
            maxPoolSize=self.pool_size,
            serverSelectionTimeoutMS=self.max_time_ms,
            connectTimeoutMS=min(self.max_time_ms, 10000),
            socketTimeoutMS=self.max_time_ms,
        )
        logger.info(
            "✓ Analytics client ready (%s:%s/%s, maxPoolSize=%d)",
            self.host, self.port, self.database, self.pool_size,
        )

    def disconnect(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            logger.info("Analytics client closed.")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def ping(self) -> bool:
        self._db().command("ping")
        return True

    def _db(self):
        if self.client is None:
            raise RuntimeError("Not connected to the analytics database.")
        return self.client[self.database]

    def _collection(self, name: str):
        return self._db()[name]

    # --- Queries ---

    def latest_period(self) -> Optional[str]:
        doc = self._collection(self.idle_collection).find_one(
            {"MonthStr": {"$ne": None}},
            projection={"MonthStr": 1, "_id": 0},
            sort=[("MonthStr", DESCENDING)],
            max_time_ms=self.max_time_ms,
        )
        return doc["MonthStr"] if doc else None

    def fetch_idle_snapshot(
        self,
        period: Optional[str] = None,
        filters: Optional[FilterSet] = None,
    ) -> List[IdleRecord]:
        """
        Fetch one monthly idle snapshot.

        Args:
            period: Snapshot month (YYYY-MM); None means the latest one
            filters: Optional FilterSet; only the branch is pushed down

        Returns:
            IdleRecords of the snapshot, longest idle first
        """
        period = period or self.latest_period()
        if period is None:
            return []

        query: Dict[str, Any] = {"MonthStr": period}
        query.update(self._branch_match(filters))
        cursor = (
            self._collection(self.idle_collection)
            .find(query, projection={"_id": 0})
            .sort("MonthsIdle", DESCENDING)
            .max_time_ms(self.max_time_ms)
        )
        return [IdleRecord.from_row(self.row_normalizer.normalize(doc)) for doc in cursor]

    def fetch_revenue_snapshot(
        self,
        period: Period = Period.LTM,
        filters: Optional[FilterSet] = None,
        today: Optional[date] = None,
    ) -> List[RevenueRecord]:
        period = Period.parse(period)
        start = period.start_date(today or date.today())
        query: Dict[str, Any] = {"BillingStopDate": {"$gte": datetime.combine(start, time.min)}}
        query.update(self._branch_match(filters))
        cursor = (
            self._collection(self.revenue_collection)
            .find(query, projection={"_id": 0})
            .max_time_ms(self.max_time_ms)
        )
        return [RevenueRecord.from_row(self.row_normalizer.normalize(doc)) for doc in cursor]

    def fetch_period_series(
        self,
        dimension: str,
        last_n_periods: int = 12,
        filters: Optional[FilterSet] = None,
    ) -> List[PeriodRow]:
        """
        Fleet totals per month and group for the most recent months.

        The branch filter is pushed down. A type or usage filter on another
        dimension keeps that field in the group key instead: history rows
        carry raw labels ("VAN", "Dry Van"), so only the caller's classifier
        can decide which of them a canonical filter selects.

        Args:
            dimension: "branch", "type" or "usage"
            last_n_periods: How many distinct months to keep
            filters: Optional FilterSet

        Returns:
            PeriodRows ordered by group, then month

        Raises:
            ValueError: If the dimension has no history field
        """
        validate_series(dimension, last_n_periods)
        filters = filters or FilterSet()

        group_key = {"period": "$MonthStr", "group": f"${SERIES_FIELDS[dimension]}"}
        for constrained in ("type", "usage"):
            if constrained != dimension and filters.constraint(constrained) is not None:
                group_key[constrained] = f"${SERIES_FIELDS[constrained]}"

        match: Dict[str, Any] = {"MonthStr": {"$ne": None}}
        match.update(self._branch_match(filters))
        pipeline = [
            {"$match": match},
            {"$group": {
                "_id": group_key,
                "total": {"$sum": "$TotalUnits"},
                "leased": {"$sum": "$LeasedUnits"},
            }},
            {"$sort": {"_id.period": -1}},
        ]
        docs = list(
            self._collection(self.history_collection).aggregate(pipeline, maxTimeMS=self.max_time_ms)
        )

        rows = [
            PeriodRow.from_row({
                "period": doc["_id"].get("period"),
                "group": doc["_id"].get("group"),
                "type": doc["_id"].get("type"),
                "usage": doc["_id"].get("usage"),
                "total": doc.get("total"),
                "leased": doc.get("leased"),
            })
            for doc in docs
        ]
        rows = [row for row in rows if row.period]
        keep = set(sorted({row.period for row in rows}, reverse=True)[:last_n_periods])
        rows = [row for row in rows if row.period in keep]
        rows.sort(key=lambda row: (row.group, row.period))
        return rows

    def _branch_match(self, filters: Optional[FilterSet]) -> Dict[str, Any]:
        if filters is None or filters.branch is None:
            return {}
        pattern = f"^{re.escape(filters.branch)}$"
        return {"Branch": {"$regex": pattern, "$options": "i"}}
