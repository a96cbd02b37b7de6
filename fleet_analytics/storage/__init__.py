# ==============================================
# STORAGE
# ==============================================
#
# Read-only clients for the two data sources.
#
# Modules:
# --------
# - inventory_store.py → InventoryStore (MySQL, primary; asset master)
# - analytics_store.py → AnalyticsStore (MongoDB, secondary; idle,
#                        revenue and history views)
#
# Both follow the same lifecycle: construct → connect() → queries →
# disconnect(), or use them as context managers.
#
# ==============================================

from .inventory_store import InventoryStore
from .analytics_store import SERIES_FIELDS, AnalyticsStore, validate_series

__all__ = ["InventoryStore", "AnalyticsStore", "SERIES_FIELDS", "validate_series"]
