# ==============================================
# Classification Rules (Data Classes)
# ==============================================
#
# PURPOSE:
#   The bucket vocabularies and the single rule table every
#   aggregation path classifies against.
#
# WHY THIS FILE EXISTS:
#   Keeping the tables apart from the classifier means a rule change
#   (a new synonym, a moved age bracket) is one edit to one object,
#   and every breakdown, matrix and summary picks it up. The table
#   carries a version string so results can say which rules made them.
#
# ENUMS:
# ------
# - TypeBucket(str, Enum)          → DRY_VAN, DRY_VAN_LIFTGATE, REEFER, ...
# - UsageBucket(str, Enum)         → OTR_0 ... STORAGE
# - LengthBucket(str, Enum)        → "20", "28-32", "40", "48", "53"
# - IdleDurationBucket(str, Enum)  → "0-6", "6-12", "12-24", "24+"
#
# CLASSES:
# --------
# - Bracket (dataclass)
#     Inclusive integer range [low, high] mapped to a bucket value.
#     high=None means unbounded.
#
# - IdleBracket (dataclass)
#     Half-open month range [low, high) mapped to an idle bucket.
#
# - ClassificationRules (dataclass, frozen)
#     Attributes:
#     -----------
#     - version: str
#     - type_synonyms: dict[str, str]   → upper-cased raw type → bucket
#     - specialty_types: frozenset[str] → raw types folded into SPECIALTY
#     - usage_brackets / length_brackets / idle_brackets
#     - usage_fallback / length_fallback / idle_fallback
#
#     Methods:
#     --------
#     - to_dict() -> dict
#     - from_dict(data: dict) -> ClassificationRules  (classmethod)
#
# - load_rules(path) -> ClassificationRules
#     Read a rule table from a JSON file.
#
# ==============================================

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union


class TypeBucket(str, Enum):
    """
    Canonical trailer types.

    REEFER and FLATBED are listed because they are common, not because the
    classifier produces them specially: any raw type outside the synonym and
    specialty tables passes through as its upper-cased self.
    """
    DRY_VAN = "DRY_VAN"
    DRY_VAN_LIFTGATE = "DRY_VAN_LIFTGATE"
    REEFER = "REEFER"
    REEFER_LIFTGATE = "REEFER_LIFTGATE"
    FLATBED = "FLATBED"
    SPECIALTY = "SPECIALTY"


class UsageBucket(str, Enum):
    OTR_0 = "OTR_0"
    OTR_1 = "OTR_1"
    OTR_2 = "OTR_2"
    CART_1 = "CART_1"
    CART_2 = "CART_2"
    STORAGE = "STORAGE"

    @property
    def label(self) -> str:
        return _USAGE_LABELS[self]


_USAGE_LABELS = {
    UsageBucket.OTR_0: "OTR 0 (0-3 yrs)",
    UsageBucket.OTR_1: "OTR 1 (4-6 yrs)",
    UsageBucket.OTR_2: "OTR 2 (7-8 yrs)",
    UsageBucket.CART_1: "Cartage 1 (9-12 yrs)",
    UsageBucket.CART_2: "Cartage 2 (13-16 yrs)",
    UsageBucket.STORAGE: "Storage (17+ yrs)",
}


class LengthBucket(str, Enum):
    FT_20 = "20"
    FT_28_32 = "28-32"
    FT_40 = "40"
    FT_48 = "48"
    FT_53 = "53"


class IdleDurationBucket(str, Enum):
    """Consecutive months without a lease, in the order they are reported."""
    UNDER_6 = "0-6"
    FROM_6_TO_12 = "6-12"
    FROM_12_TO_24 = "12-24"
    OVER_24 = "24+"

    @property
    def label(self) -> str:
        return f"{self.value} Months"

    @classmethod
    def parse(cls, value: Any) -> Optional["IdleDurationBucket"]:
        """Accept either the bare value ("6-12") or the label ("6-12 Months")."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        if text.lower().endswith("months"):
            text = text[: -len("months")].strip()
        for bucket in cls:
            if bucket.value == text:
                return bucket
        return None


@dataclass(frozen=True)
class Bracket:
    """Inclusive range of whole numbers. A ``None`` bound is unbounded."""

    low: Optional[int]
    high: Optional[int]
    bucket: str

    def contains(self, value: int) -> bool:
        if self.low is not None and value < self.low:
            return False
        return self.high is None or value <= self.high

    def to_dict(self) -> Dict[str, Any]:
        return {"low": self.low, "high": self.high, "bucket": self.bucket}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bracket":
        low, high = data.get("low"), data.get("high")
        return cls(
            low=None if low is None else int(low),
            high=None if high is None else int(high),
            bucket=str(data["bucket"]),
        )


@dataclass(frozen=True)
class IdleBracket:
    """Half-open range of months ``[low, high)``. ``high=None`` is unbounded."""

    low: float
    high: Optional[float]
    bucket: str

    def contains(self, months: float) -> bool:
        if months < self.low:
            return False
        return self.high is None or months < self.high

    def to_dict(self) -> Dict[str, Any]:
        return {"low": self.low, "high": self.high, "bucket": self.bucket}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdleBracket":
        high = data.get("high")
        return cls(
            low=float(data["low"]),
            high=None if high is None else float(high),
            bucket=str(data["bucket"]),
        )


DEFAULT_TYPE_SYNONYMS: Dict[str, str] = {
    "VAN": TypeBucket.DRY_VAN.value,
    "DRY VAN": TypeBucket.DRY_VAN.value,
    "VAN LIFTGATE": TypeBucket.DRY_VAN_LIFTGATE.value,
    "LIFTGATE": TypeBucket.DRY_VAN_LIFTGATE.value,
    "REEFER LIFTGATE": TypeBucket.REEFER_LIFTGATE.value,
}

DEFAULT_SPECIALTY_TYPES: FrozenSet[str] = frozenset({
    "CHASSIS",
    "CONGEAR",
    "CURTAIN",
    "DROPDECK",
    "ELECTRIC STANDBY UNIT",
    "REEFER ELECTRIC STANDBY UNIT",
    "SEE COMMENTS",
    "MOVE VAN",
    "STEPDECK",
    "PUP",
    "PUP VAN",
})

# Age in years (current year - model year)
DEFAULT_USAGE_BRACKETS: Tuple[Bracket, ...] = (
    Bracket(0, 3, UsageBucket.OTR_0.value),
    Bracket(4, 6, UsageBucket.OTR_1.value),
    Bracket(7, 8, UsageBucket.OTR_2.value),
    Bracket(9, 12, UsageBucket.CART_1.value),
    Bracket(13, 16, UsageBucket.CART_2.value),
    Bracket(17, None, UsageBucket.STORAGE.value),
)

# Length in feet. Anything outside these, or unparseable, is the fallback.
DEFAULT_LENGTH_BRACKETS: Tuple[Bracket, ...] = (
    Bracket(None, 27, LengthBucket.FT_20.value),
    Bracket(28, 32, LengthBucket.FT_28_32.value),
    Bracket(33, 42, LengthBucket.FT_40.value),
    Bracket(43, 50, LengthBucket.FT_48.value),
)

DEFAULT_IDLE_BRACKETS: Tuple[IdleBracket, ...] = (
    IdleBracket(0, 6, IdleDurationBucket.UNDER_6.value),
    IdleBracket(6, 12, IdleDurationBucket.FROM_6_TO_12.value),
    IdleBracket(12, 24, IdleDurationBucket.FROM_12_TO_24.value),
    IdleBracket(24, None, IdleDurationBucket.OVER_24.value),
)


@dataclass(frozen=True)
class ClassificationRules:
    """
    Versioned rule table shared by every classification call.

    Instances are immutable; build a new one (or load a JSON file) to change
    the rules. The fallbacks make every classification total.
    """

    version: str = "1"
    type_synonyms: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TYPE_SYNONYMS))
    specialty_types: FrozenSet[str] = DEFAULT_SPECIALTY_TYPES
    usage_brackets: Tuple[Bracket, ...] = DEFAULT_USAGE_BRACKETS
    usage_fallback: str = UsageBucket.STORAGE.value
    length_brackets: Tuple[Bracket, ...] = DEFAULT_LENGTH_BRACKETS
    length_fallback: str = LengthBucket.FT_53.value
    idle_brackets: Tuple[IdleBracket, ...] = DEFAULT_IDLE_BRACKETS
    idle_fallback: str = IdleDurationBucket.UNDER_6.value

    @property
    def canonical_types(self) -> FrozenSet[str]:
        """Bucket values the type classifier can produce from the tables."""
        return frozenset(self.type_synonyms.values()) | {TypeBucket.SPECIALTY.value}

    @property
    def usage_buckets(self) -> Tuple[str, ...]:
        buckets = [b.bucket for b in self.usage_brackets]
        if self.usage_fallback not in buckets:
            buckets.append(self.usage_fallback)
        return tuple(buckets)

    @property
    def length_buckets(self) -> Tuple[str, ...]:
        buckets = [b.bucket for b in self.length_brackets]
        if self.length_fallback not in buckets:
            buckets.append(self.length_fallback)
        return tuple(buckets)

    @property
    def idle_buckets(self) -> Tuple[str, ...]:
        buckets = [b.bucket for b in self.idle_brackets]
        if self.idle_fallback not in buckets:
            buckets.insert(0, self.idle_fallback)
        return tuple(buckets)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the rule table.

        Returns:
            A JSON-serializable dictionary representation
        """
        return {
            "version": self.version,
            "type_synonyms": dict(self.type_synonyms),
            "specialty_types": sorted(self.specialty_types),
            "usage_brackets": [b.to_dict() for b in self.usage_brackets],
            "usage_fallback": self.usage_fallback,
            "length_brackets": [b.to_dict() for b in self.length_brackets],
            "length_fallback": self.length_fallback,
            "idle_brackets": [b.to_dict() for b in self.idle_brackets],
            "idle_fallback": self.idle_fallback,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassificationRules":
        """
        Rebuild a rule table. Missing keys keep their defaults.

        Args:
            data: Dictionary as produced by to_dict()

        Returns:
            A ClassificationRules instance
        """
        defaults = cls()
        synonyms = data.get("type_synonyms")
        specialty = data.get("specialty_types")
        return cls(
            version=str(data.get("version", defaults.version)),
            type_synonyms=(
                {str(k).strip().upper(): str(v) for k, v in synonyms.items()}
                if synonyms is not None else defaults.type_synonyms
            ),
            specialty_types=(
                frozenset(str(s).strip().upper() for s in specialty)
                if specialty is not None else defaults.specialty_types
            ),
            usage_brackets=_brackets(data.get("usage_brackets"), Bracket, defaults.usage_brackets),
            usage_fallback=data.get("usage_fallback", defaults.usage_fallback),
            length_brackets=_brackets(data.get("length_brackets"), Bracket, defaults.length_brackets),
            length_fallback=data.get("length_fallback", defaults.length_fallback),
            idle_brackets=_brackets(data.get("idle_brackets"), IdleBracket, defaults.idle_brackets),
            idle_fallback=data.get("idle_fallback", defaults.idle_fallback),
        )


def _brackets(raw, bracket_cls, default):
    if raw is None:
        return default
    return tuple(bracket_cls.from_dict(item) for item in raw)


DEFAULT_RULES = ClassificationRules()


def load_rules(path: Union[str, Path]) -> ClassificationRules:
    """Load a rule table from a JSON file written in the to_dict() layout."""
    with open(path, "r", encoding="utf-8") as handle:
        return ClassificationRules.from_dict(json.load(handle))
