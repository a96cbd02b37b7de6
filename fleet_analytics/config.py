# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration from environment
#   variables / .env file. Provides typed config objects
#   to all other modules.
#
# CLASSES:
# --------
# - InventoryDBConfig (dataclass)
#     host, port (3306), user, password, database
#     table: str                   (default "TSpecs")
#     pool_size: int               (default 10)
#     query_timeout_seconds: float (default 60.0)
#
# - AnalyticsDBConfig (dataclass)
#     host, port (27017), user, password, database
#     pool_size: int               (default 5)
#     query_timeout_seconds: float (default 30.0)
#     idle_collection / revenue_collection / history_collection
#
# - DashboardConfig (dataclass)
#     app_env: str                 (default "production")
#     log_level: str               (default "INFO")
#     critical_idle_limit: int     (default 25)
#     trend_periods: int           (default 12)
#     rules_file: str | None       (JSON rule table; None = built-in)
#
# - AppConfig (dataclass)
#     inventory, analytics, dashboard, thresholds (MetricThresholds)
#
# FUNCTIONS:
# ----------
# - load_config(env_path=None) -> AppConfig
#     Load .env using python-dotenv, construct a fresh AppConfig.
#
# - get_config() -> AppConfig
#     Same as load_config() but returns one cached singleton.
#
# USAGE:
# ------
#   from fleet_analytics.config import get_config
#   config = get_config()
#   print(config.inventory.host)
#   print(config.thresholds.utilization_good)
#
# ==============================================

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from fleet_analytics.analysis.metrics import MetricThresholds


@dataclass
class InventoryDBConfig:
    """Primary (MySQL) inventory database configuration."""
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = "fleet"
    table: str = "TSpecs"
    pool_size: int = 10
    query_timeout_seconds: float = 60.0


@dataclass
class AnalyticsDBConfig:
    """Secondary (MongoDB) analytics database configuration."""
    host: str = "localhost"
    port: int = 27017
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = "fleet_analytics"
    pool_size: int = 5
    query_timeout_seconds: float = 30.0
    idle_collection: str = "idle_assets"
    revenue_collection: str = "revenue_details"
    history_collection: str = "fleet_history"


@dataclass
class DashboardConfig:
    """Presentation-side settings."""
    app_env: str = "production"
    log_level: str = "INFO"
    critical_idle_limit: int = 25
    trend_periods: int = 12
    rules_file: Optional[str] = None


@dataclass
class AppConfig:
    """Main application configuration."""
    inventory: InventoryDBConfig = field(default_factory=InventoryDBConfig)
    analytics: AnalyticsDBConfig = field(default_factory=AnalyticsDBConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    thresholds: MetricThresholds = field(default_factory=MetricThresholds)

    @property
    def is_production(self) -> bool:
        return self.dashboard.app_env.lower() == "production"


# Singleton instance
_config_instance: Optional[AppConfig] = None


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def load_config(env_path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Build a fresh configuration from environment variables / .env file.

    Variables already set in the environment win over the .env file.

    Args:
        env_path: .env file to read; defaults to the project root's .env

    Returns:
        AppConfig: Application configuration

    Raises:
        ValueError: If a number does not parse or thresholds are misordered
    """
    # Load .env file from project root
    env_path = Path(env_path) if env_path else Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    # Build inventory (MySQL) configuration
    inventory = InventoryDBConfig(
        host=os.getenv("INVENTORY_DB_HOST", "localhost"),
        port=_env_int("INVENTORY_DB_PORT", 3306),
        user=os.getenv("INVENTORY_DB_USER", "root"),
        password=os.getenv("INVENTORY_DB_PASSWORD", ""),
        database=os.getenv("INVENTORY_DB_NAME", "fleet"),
        table=os.getenv("INVENTORY_DB_TABLE", "TSpecs"),
        pool_size=_env_int("INVENTORY_DB_POOL_SIZE", 10),
        query_timeout_seconds=_env_float("INVENTORY_DB_TIMEOUT_SECONDS", 60.0),
    )

    # Build analytics (MongoDB) configuration
    analytics = AnalyticsDBConfig(
        host=os.getenv("ANALYTICS_DB_HOST", "localhost"),
        port=_env_int("ANALYTICS_DB_PORT", 27017),
        user=os.getenv("ANALYTICS_DB_USER") or None,
        password=os.getenv("ANALYTICS_DB_PASSWORD") or None,
        database=os.getenv("ANALYTICS_DB_NAME", "fleet_analytics"),
        pool_size=_env_int("ANALYTICS_DB_POOL_SIZE", 5),
        query_timeout_seconds=_env_float("ANALYTICS_DB_TIMEOUT_SECONDS", 30.0),
        idle_collection=os.getenv("ANALYTICS_IDLE_COLLECTION", "idle_assets"),
        revenue_collection=os.getenv("ANALYTICS_REVENUE_COLLECTION", "revenue_details"),
        history_collection=os.getenv("ANALYTICS_HISTORY_COLLECTION", "fleet_history"),
    )

    dashboard = DashboardConfig(
        app_env=os.getenv("APP_ENV", "production"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        critical_idle_limit=_env_int("CRITICAL_IDLE_LIMIT", 25),
        trend_periods=_env_int("TREND_PERIODS", 12),
        rules_file=os.getenv("RULES_FILE") or None,
    )

    # KPI thresholds; MetricThresholds validates their ordering
    thresholds = MetricThresholds(
        utilization_good=_env_float("UTILIZATION_GOOD_THRESHOLD", 0.80),
        utilization_warning=_env_float("UTILIZATION_WARNING_THRESHOLD", 0.60),
        rate_variance_good=_env_float("RATE_VARIANCE_GOOD_THRESHOLD", 0.0),
        rate_variance_warning=_env_float("RATE_VARIANCE_WARNING_THRESHOLD", -0.10),
        rate_variance_severe=_env_float("RATE_VARIANCE_SEVERE_THRESHOLD", -0.20),
        idle_healthy_months=_env_float("IDLE_HEALTHY_MONTHS", 6),
        idle_warning_months=_env_float("IDLE_WARNING_MONTHS", 12),
        growth_good=_env_float("GROWTH_GOOD_THRESHOLD", 0.05),
        growth_warning=_env_float("GROWTH_WARNING_THRESHOLD", 0.0),
    )

    return AppConfig(
        inventory=inventory,
        analytics=analytics,
        dashboard=dashboard,
        thresholds=thresholds,
    )


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() reloads."""
    global _config_instance
    _config_instance = None
