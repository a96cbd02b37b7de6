# ==============================================
# NORMALIZATION
# ==============================================
#
# Turns raw rows from either data source into clean,
# canonically-keyed dicts the record models can read.
#
# Modules:
# --------
# - value_parser.py     → Lenient int/float/date/period parsing
# - field_normalizer.py → Upstream column name → canonical field name
# - row_normalizer.py   → Applies both to whole rows
#
# ==============================================

from .value_parser import ValueParser
from .field_normalizer import FieldNormalizer, COLUMN_ALIASES
from .row_normalizer import RowNormalizer

__all__ = ["ValueParser", "FieldNormalizer", "COLUMN_ALIASES", "RowNormalizer"]
