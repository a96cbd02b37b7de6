# ==============================================
# Fleet Analytics Engine
# ==============================================
#
# Package Structure:
#
# fleet_analytics/
# ├── normalization/    # Parse messy upstream values and column names
# ├── classification/   # Rule table + AssetClassifier (type/usage/length/idle)
# ├── analysis/         # Single-pass aggregation, KPIs, idle/revenue rollups
# ├── storage/          # InventoryStore (MySQL) / AnalyticsStore (MongoDB)
# ├── coordination/     # SourceCoordinator, SourceResult, source errors
# ├── models.py         # Record data classes
# ├── filters.py        # FilterSet and revenue Period
# ├── config.py         # Configuration management
# ├── dashboard.py      # FleetDashboard: the presentation-facing API
# └── cli.py            # Command line entry point
#
# ==============================================

__version__ = "0.1.0"
