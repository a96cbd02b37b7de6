# ==============================================
# CLI — Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Command-line access to the dashboard operations. The CLI is
#   the process entry point: it builds both stores and the
#   coordinator, hands them to FleetDashboard, and closes them.
#
# COMMANDS:
# ---------
# 1. Headline figures:
#    python -m fleet_analytics.cli summary --branch Dallas
#
# 2. Breakdowns and matrices:
#    python -m fleet_analytics.cli breakdown --dims type
#    python -m fleet_analytics.cli matrix type usage
#    python -m fleet_analytics.cli overview
#
# 3. Analytics views:
#    python -m fleet_analytics.cli idle
#    python -m fleet_analytics.cli revenue --period LQA
#    python -m fleet_analytics.cli trend branch --periods 6
#
# 4. Exports (exit code 2 when empty):
#    python -m fleet_analytics.cli export critical-idle --branch Houston
#    python -m fleet_analytics.cli export revenue --period YTD
#
# 5. Connectivity:
#    python -m fleet_analytics.cli branches
#    python -m fleet_analytics.cli status
#
# Output is JSON on stdout. Exit code 1 when the inventory source
# fails, 2 when an export finds no rows.
#
# ==============================================

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from fleet_analytics.analysis import MetricsEngine
from fleet_analytics.classification import AssetClassifier, load_rules
from fleet_analytics.config import AppConfig, get_config
from fleet_analytics.coordination import NoDataError, PrimarySourceError, SourceCoordinator, SourceError
from fleet_analytics.dashboard import FleetDashboard
from fleet_analytics.filters import FilterSet, Period
from fleet_analytics.storage import AnalyticsStore, InventoryStore

logger = logging.getLogger(__name__)

EXPORTS = ("inventory", "utilization", "revenue", "idle", "never-leased", "critical-idle")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleet-analytics",
        description="Fleet classification and utilization dashboard",
    )

    filters = argparse.ArgumentParser(add_help=False)
    filters.add_argument("--branch", default=None)
    filters.add_argument("--type", dest="type_", default=None)
    filters.add_argument("--usage", default=None)
    filters.add_argument("--idle-bucket", default=None)
    filters.add_argument("--period", default=Period.LTM.value, choices=[p.value for p in Period])
    filters.add_argument("--status", default=None, help="Audit a single status (default: active fleet)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("summary", parents=[filters], help="Headline fleet, idle and revenue figures")

    breakdown = sub.add_parser("breakdown", parents=[filters], help="Counts by one or two dimensions")
    breakdown.add_argument("--dims", nargs="+", default=["type"])

    matrix = sub.add_parser("matrix", parents=[filters], help="Two-dimension cross-tab")
    matrix.add_argument("dim1")
    matrix.add_argument("dim2")

    sub.add_parser("overview", parents=[filters], help="Every standard breakdown from one scan")

    idle = sub.add_parser("idle", parents=[filters], help="Idle asset report")
    idle.add_argument("--snapshot", default=None, help="Snapshot month YYYY-MM (default: latest)")

    sub.add_parser("revenue", parents=[filters], help="Billed vs card rate report")

    trend = sub.add_parser("trend", parents=[filters], help="Monthly utilization trend")
    trend.add_argument("dimension", choices=["branch", "type", "usage"])
    trend.add_argument("--periods", type=int, default=None)

    sub.add_parser("branches", help="List branches")

    export = sub.add_parser("export", parents=[filters], help="Export report rows")
    export.add_argument("report", choices=EXPORTS)

    sub.add_parser("status", help="Check both data sources")

    return parser


def filters_from_args(args: argparse.Namespace) -> FilterSet:
    return FilterSet.from_mapping({
        "branch": getattr(args, "branch", None),
        "type": getattr(args, "type_", None),
        "usage": getattr(args, "usage", None),
        "idle_bucket": getattr(args, "idle_bucket", None),
        "period": getattr(args, "period", None),
        "status": getattr(args, "status", None),
    })


def run(args: argparse.Namespace, dashboard: FleetDashboard) -> Any:
    """Dispatch one parsed command to the dashboard and return its result."""
    command = args.command

    if command == "branches":
        return dashboard.list_branches()
    if command == "status":
        return check_sources(dashboard.coordinator)

    filters = filters_from_args(args)

    if command == "summary":
        return dashboard.get_summary(filters)
    if command == "breakdown":
        return dashboard.get_breakdown(args.dims, filters)
    if command == "matrix":
        return dashboard.get_matrix(args.dim1, args.dim2, filters)
    if command == "overview":
        return dashboard.get_fleet_overview(filters)
    if command == "idle":
        return dashboard.get_idle_report(filters, period=args.snapshot)
    if command == "revenue":
        return dashboard.get_revenue_report(filters)
    if command == "trend":
        return dashboard.get_trend(args.dimension, args.periods, filters)
    if command == "export":
        exporters = {
            "inventory": dashboard.export_inventory,
            "utilization": dashboard.export_utilization,
            "revenue": dashboard.export_revenue,
            "idle": dashboard.export_idle,
            "never-leased": dashboard.export_never_leased,
            "critical-idle": dashboard.export_critical_idle,
        }
        return exporters[args.report](filters)

    raise ValueError(f"Unknown command '{command}'")


def check_sources(coordinator: SourceCoordinator) -> dict:
    fetch = coordinator.fetch(
        {"branches": lambda store: store.fetch_branches()},
        {"ping": lambda store: store.ping(), "latest_period": lambda store: store.latest_period()},
    )
    latest = fetch.secondary["latest_period"]
    return {
        "inventory": {"ok": True, "branches": len(fetch.primary["branches"])},
        "analytics": {
            "ok": not fetch.degraded,
            "latest_snapshot": latest.value_or(None),
        },
        "sources": fetch.sources(),
    }


def build_classifier(config: AppConfig) -> AssetClassifier:
    rules_file = config.dashboard.rules_file
    if rules_file:
        logger.info("Loading classification rules from %s", rules_file)
        return AssetClassifier(load_rules(rules_file))
    return AssetClassifier()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.dashboard.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    inventory = InventoryStore.from_config(config.inventory)
    analytics = AnalyticsStore.from_config(config.analytics)
    inventory.connect()
    analytics.connect()
    coordinator = SourceCoordinator(
        inventory,
        analytics,
        primary_timeout=config.inventory.query_timeout_seconds,
        secondary_timeout=config.analytics.query_timeout_seconds,
    )

    try:
        dashboard = FleetDashboard(
            coordinator,
            classifier=build_classifier(config),
            metrics=MetricsEngine(config.thresholds),
            config=config,
        )
        result = run(args, dashboard)
    except PrimarySourceError as e:
        print(json.dumps({"error": e.user_message(debug=not config.is_production)}), file=sys.stderr)
        return 1
    except SourceError as e:
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return 1
    except NoDataError as e:
        print(json.dumps({"error": e.message, "report": e.report}), file=sys.stderr)
        return 2
    except ValueError as e:
        parser.error(str(e))
    finally:
        coordinator.close()
        analytics.disconnect()
        inventory.disconnect()

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
