# ==============================================
# FieldNormalizer
# ==============================================
#
# PURPOSE:
#   Convert upstream column names to the canonical field names
#   used by the record models, so that both data sources can be
#   read through the same mapping code.
#
# WHY THIS CLASS EXISTS:
#   The two stores publish the same logical attribute under
#   different names:
#     - "Fleetcity" (inventory), "Branch" (analytics views)
#     - "Unit", "UnitNumber"
#     - "CardRate", "CardRateMonth"
#   Rows are first converted to snake_case, then known aliases
#   are folded onto one canonical name.
#
# CLASS: FieldNormalizer
# ----------------------
#   Stateless apart from a memo of names already seen.
#
#   Methods:
#   --------
#   - normalize(name: str) -> str
#       snake_case + alias lookup.
#
# RULES:
# ------
#   1. camelCase / PascalCase → snake_case   (MonthsIdle → months_idle)
#   2. ALLCAPS               → lowercase     (VIN → vin)
#   3. Known alias           → canonical     (fleetcity → branch)
#   4. Remove special characters, collapse multiple underscores
#
# ==============================================

import re
from typing import Dict


# snake_case upstream name → canonical record field
COLUMN_ALIASES: Dict[str, str] = {
    "fleetcity": "branch",
    "city": "branch",
    "unit_number": "unit",
    "type_bucket": "type",
    "trailer_type": "type",
    "usage_category": "usage",
    "length_bucket": "length",
    "year": "model_year",
    "asset_cost": "cost",
    "idle_duration_bucket": "idle_bucket",
    "card_rate_month": "card_rate",
    "billed_monthly_rate": "billed_rate",
    "month_str": "period",
    "sold_date": "sale_date",
    "total_units": "total",
    "leased_units": "leased",
}


class FieldNormalizer:
    """
    Converts upstream column names to canonical record field names.
    Maintains a mapping of original names to canonical forms.
    """

    def __init__(self, aliases: Dict[str, str] = None):
        self._aliases = dict(COLUMN_ALIASES if aliases is None else aliases)
        self._mappings: Dict[str, str] = {}

    def normalize(self, name: str) -> str:
        """
        Convert a column name to its canonical field name.

        Args:
            name: Raw column name (e.g., "Fleetcity", "CardRateMonth")

        Returns:
            Canonical field name (e.g., "branch", "card_rate")
        """
        if not name:
            return name

        if name in self._mappings:
            return self._mappings[name]

        snake = self._camel_to_snake(name)
        canonical = self._aliases.get(snake, snake)
        self._mappings[name] = canonical
        return canonical

    def _camel_to_snake(self, name: str) -> str:
        name = re.sub(r'[^a-zA-Z0-9_]', '_', name)

        # "XMLParser" -> "XML_Parser"
        name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)

        # "cardRate" -> "card_Rate"
        name = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', name)

        name = name.lower()
        name = re.sub(r'_+', '_', name)
        return name.strip('_')
