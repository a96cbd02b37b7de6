# ==============================================
# InventoryStore
# ==============================================
#
# PURPOSE:
#   Read access to the primary inventory database (MySQL): the
#   asset master table every fleet count is computed from.
#
# WHY THIS CLASS EXISTS:
#   Counts are only as correct as this source, so it is the one
#   source whose failure fails the request. The class owns a
#   bounded connection pool so concurrent queries of one request
#   never open more connections than the pool allows.
#
# CLASS: InventoryStore
# ---------------------
#   Stateful — holds a SQLAlchemy engine (QueuePool over PyMySQL).
#
#   Constructor:
#   ------------
#   - __init__(host, port, user, password, database, table="TSpecs",
#              pool_size=10, query_timeout_seconds=60, engine=None)
#       Store connection params. Don't connect yet.
#       An engine may be injected (tests, shared pools).
#
#   Methods:
#   --------
#   - connect() -> None
#       Build the pooled engine. max_overflow=0 keeps the pool bounded.
#
#   - disconnect() -> None
#       Dispose the pool.
#
#   - fetch_all(query: str, params: dict = None) -> list[dict]
#       Execute SELECT and return rows as dicts.
#
#   - fetch_assets(filters, active_only=True) -> list[AssetRecord]
#   - fetch_active_fleet(filters) -> list[AssetRecord]
#   - fetch_branches() -> list[str]
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with InventoryStore(...) as db:` usage.
#
# ==============================================

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.pool import QueuePool

from fleet_analytics.filters import FilterSet
from fleet_analytics.models import ACTIVE_STATUSES, AssetRecord, AssetStatus
from fleet_analytics.normalization import RowNormalizer

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ASSET_COLUMNS = (
    "Unit",
    "Fleetcity",
    "Status",
    "Type",
    "Length",
    "Year",
    "Make",
    "VIN",
    "Cost",
    "PurchaseDate",
    "SoldDate",
)


class InventoryStore:
    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        user: str = "root",
        password: str = "",
        database: str = "fleet",
        table: str = "TSpecs",
        pool_size: int = 10,
        query_timeout_seconds: float = 60.0,
        engine: Optional[Engine] = None,
    ):
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name '{table}'")
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.table = table
        self.pool_size = pool_size
        self.query_timeout_seconds = query_timeout_seconds
        self.engine = engine
        self.row_normalizer = RowNormalizer()

    @classmethod
    def from_config(cls, config) -> "InventoryStore":
        return cls(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.database,
            table=config.table,
            pool_size=config.pool_size,
            query_timeout_seconds=config.query_timeout_seconds,
        )

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    def connect(self) -> None:
        # Build the pooled engine; connections open lazily on first checkout
        if self.engine is not None:
            return

        timeout = max(1, int(self.query_timeout_seconds))
        url = URL.create(
            "mysql+pymysql",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query={"charset": "utf8mb4"},
        )
        self.engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=self.pool_size,
            max_overflow=0,
            pool_timeout=timeout,
            pool_recycle=1800,
            pool_pre_ping=True,
            connect_args={
                "connect_timeout": min(timeout, 10),
                "read_timeout": timeout,
                "write_timeout": timeout,
            },
        )
        logger.info(
            "✓ Inventory pool ready (%s:%s/%s, pool_size=%d)",
            self.host, self.port, self.database, self.pool_size,
        )

    def disconnect(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            logger.info("Inventory pool disposed.")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def fetch_all(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[dict]:
        # Execute SELECT and return rows as dicts
        if self.engine is None:
            raise RuntimeError("Not connected to the inventory database.")

        with self.engine.connect() as conn:
            result = conn.execute(text(query), params or {})
            return [dict(row) for row in result.mappings()]

    def fetch_assets(
        self,
        filters: Optional[FilterSet] = None,
        active_only: bool = True,
    ) -> List[AssetRecord]:
        """
        Fetch asset rows and map them onto AssetRecords.

        Branch and status constraints are pushed into the query; the rest
        of the FilterSet is applied after classification.

        Args:
            filters: Optional FilterSet
            active_only: Restrict to AVAILABLE / LEASED unless a status is set

        Returns:
            List of AssetRecords ordered by branch and unit
        """
        query, params = self._build_asset_query(filters or FilterSet(), active_only)
        rows = self.fetch_all(query, params)
        return [AssetRecord.from_row(self.row_normalizer.normalize(row)) for row in rows]

    def fetch_active_fleet(self, filters: Optional[FilterSet] = None) -> List[AssetRecord]:
        return self.fetch_assets(filters, active_only=True)

    def fetch_branches(self) -> List[str]:
        query = (
            f"SELECT {self._hint()} DISTINCT Fleetcity FROM {self.table} "
            "WHERE Fleetcity IS NOT NULL AND Fleetcity <> '' "
            "ORDER BY Fleetcity"
        )
        return [str(row["Fleetcity"]).strip() for row in self.fetch_all(query)]

    def _hint(self) -> str:
        # MySQL optimizer hint; other engines read it as a comment
        return f"/*+ MAX_EXECUTION_TIME({int(self.query_timeout_seconds * 1000)}) */"

    def _build_asset_query(self, filters: FilterSet, active_only: bool) -> Tuple[str, Dict[str, Any]]:
        clauses = []
        params: Dict[str, Any] = {}

        active = []
        for i, status in enumerate(sorted(s.value for s in ACTIVE_STATUSES)):
            active.append(f":status_{i}")
            params[f"status_{i}"] = status

        if filters.status == AssetStatus.OTHER.value:
            clauses.append(f"(Status IS NULL OR UPPER(Status) NOT IN ({', '.join(active)}))")
        elif filters.status is not None:
            clauses.append("UPPER(Status) = :status")
            params = {"status": filters.status.upper()}
        elif active_only:
            clauses.append(f"UPPER(Status) IN ({', '.join(active)})")
        else:
            params = {}

        if filters.branch is not None:
            clauses.append("LOWER(Fleetcity) = :branch")
            params["branch"] = filters.branch.lower()

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        query = (
            f"SELECT {self._hint()} {', '.join(ASSET_COLUMNS)} "
            f"FROM {self.table}{where} "
            "ORDER BY Fleetcity, Unit"
        )
        return query, params
