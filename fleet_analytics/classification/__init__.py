# ==============================================
# CLASSIFICATION
# ==============================================
#
# Deterministic bucket assignment for trailer assets.
#
# Modules:
# --------
# - rules.py      → Bucket enums + the versioned ClassificationRules table
# - classifier.py → AssetClassifier: raw attributes / records → buckets
#
# ==============================================

from .rules import (
    Bracket,
    ClassificationRules,
    DEFAULT_RULES,
    IdleBracket,
    IdleDurationBucket,
    LengthBucket,
    TypeBucket,
    UsageBucket,
    load_rules,
)
from .classifier import (
    UNASSIGNED_BRANCH,
    AssetClassifier,
    classify_length,
    classify_type,
    classify_usage,
)

__all__ = [
    "Bracket",
    "ClassificationRules",
    "DEFAULT_RULES",
    "IdleBracket",
    "IdleDurationBucket",
    "LengthBucket",
    "TypeBucket",
    "UsageBucket",
    "load_rules",
    "UNASSIGNED_BRANCH",
    "AssetClassifier",
    "classify_length",
    "classify_type",
    "classify_usage",
]
