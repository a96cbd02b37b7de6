# ==============================================
# AssetClassifier
# ==============================================
#
# PURPOSE:
#   Maps raw asset attributes onto canonical buckets using one
#   ClassificationRules table, and labels whole records so the
#   aggregator can group them.
#
# CLASS: AssetClassifier
# ----------------------
#   Stateless apart from the rule table and a clock.
#   Every function is total: it never raises and never returns
#   an "unclassified" value; unknown input lands in a fallback bucket.
#
#   Constructor:
#   ------------
#   - __init__(rules: ClassificationRules = DEFAULT_RULES, clock=date.today)
#
#   Methods:
#   --------
#   - classify_type(raw_type) -> str
#       RULE 1: null / blank              → SPECIALTY
#       RULE 2: specialty keyword         → SPECIALTY
#       RULE 3: known synonym             → canonical bucket
#       RULE 4: anything else             → upper-cased pass-through
#
#   - classify_usage(model_year, now) -> str
#       age = now.year - model_year, looked up in the usage brackets.
#       Unparseable year, negative age → STORAGE.
#
#   - classify_length(raw_length) -> str
#       Strip quote characters, parse an integer, look up the
#       length brackets. Everything else → "53".
#
#   - classify_idle_duration(months_idle) -> str
#       Half-open month ranges. Missing / negative → "0-6".
#
#   - classify_asset / classify_idle / classify_revenue
#       Record → ClassifiedRecord with its label map.
#
#   - classify_batch(records) -> list[ClassifiedRecord]
#       Same "now" for the whole batch.
#
# ==============================================

from datetime import date, datetime
from typing import Any, Callable, Iterable, List, Optional, Union

from fleet_analytics.models import (
    AssetRecord,
    ClassifiedRecord,
    IdleRecord,
    RevenueRecord,
)
from fleet_analytics.normalization import ValueParser

from .rules import DEFAULT_RULES, ClassificationRules, TypeBucket

UNASSIGNED_BRANCH = "UNASSIGNED"

Now = Union[date, datetime, int, None]


class AssetClassifier:
    """
    Applies a ClassificationRules table to raw attributes and records.

    One instance is shared by every aggregation path so all of them agree
    on the rules in force.
    """

    def __init__(
        self,
        rules: Optional[ClassificationRules] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.rules = rules or DEFAULT_RULES
        self.clock = clock

    # --- Attribute rules ---

    def classify_type(self, raw_type: Any) -> str:
        """
        Classify a raw trailer type.

        Args:
            raw_type: Upstream type string (any case, may be None)

        Returns:
            Canonical type bucket, or the normalized raw value
        """
        if raw_type is None:
            return TypeBucket.SPECIALTY.value

        normalized = " ".join(str(raw_type).split()).upper()
        if not normalized:
            return TypeBucket.SPECIALTY.value
        if normalized in self.rules.specialty_types:
            return TypeBucket.SPECIALTY.value
        return self.rules.type_synonyms.get(normalized, normalized)

    def classify_usage(self, model_year: Any, now: Now = None) -> str:
        """
        Classify an asset's age into a usage bucket.

        Args:
            model_year: Model year (int, numeric string, or junk)
            now: Reference date or year; defaults to the classifier's clock

        Returns:
            Usage bucket value
        """
        year = ValueParser.to_int(model_year)
        if year is None:
            return self.rules.usage_fallback

        age = self._current_year(now) - year
        if age < 0:
            return self.rules.usage_fallback

        for bracket in self.rules.usage_brackets:
            if bracket.contains(age):
                return bracket.bucket
        return self.rules.usage_fallback

    def classify_length(self, raw_length: Any) -> str:
        feet = self._parse_length(raw_length)
        if feet is None:
            return self.rules.length_fallback

        for bracket in self.rules.length_brackets:
            if bracket.contains(feet):
                return bracket.bucket
        return self.rules.length_fallback

    def classify_idle_duration(self, months_idle: Any) -> str:
        months = ValueParser.to_float(months_idle)
        if months is None or months < 0:
            return self.rules.idle_fallback

        for bracket in self.rules.idle_brackets:
            if bracket.contains(months):
                return bracket.bucket
        return self.rules.idle_fallback

    # --- Published labels (analytics views carry their own) ---

    def resolve_usage(self, label: Any, model_year: Any = None, now: Now = None) -> str:
        """Prefer the model year; otherwise keep a recognised usage label."""
        if ValueParser.to_int(model_year) is not None:
            return self.classify_usage(model_year, now)

        text = ValueParser.to_text(label)
        if text is not None and text.upper() in self.rules.usage_buckets:
            return text.upper()
        return self.rules.usage_fallback

    def resolve_length(self, label: Any) -> str:
        text = ValueParser.to_text(label)
        if text is not None and text in self.rules.length_buckets:
            return text
        return self.classify_length(label)

    def resolve_branch(self, branch: Any) -> str:
        return ValueParser.to_text(branch) or UNASSIGNED_BRANCH

    # --- Records ---

    def classify_asset(self, record: AssetRecord, now: Now = None) -> ClassifiedRecord:
        now = self.reference_date(now)
        labels = {
            "branch": self.resolve_branch(record.branch),
            "type": self.classify_type(record.raw_type),
            "usage": self.classify_usage(record.model_year, now),
            "length": self.classify_length(record.raw_length),
            "status": record.status.value,
        }
        if record.raw_status:
            # Kept so a status filter can name SOLD, RETIRED, ...
            labels["raw_status"] = record.raw_status.upper()
        return ClassifiedRecord(record, labels)

    def classify_idle(self, record: IdleRecord, now: Now = None) -> ClassifiedRecord:
        now = self.reference_date(now)
        return ClassifiedRecord(record, {
            "branch": self.resolve_branch(record.branch),
            "type": self.classify_type(record.raw_type),
            "usage": self.resolve_usage(record.raw_usage, record.model_year, now),
            "length": self.resolve_length(record.raw_length),
            "idle_bucket": self.classify_idle_duration(record.months_idle),
        })

    def classify_revenue(self, record: RevenueRecord, now: Now = None) -> ClassifiedRecord:
        now = self.reference_date(now)
        labels = {
            "branch": self.resolve_branch(record.branch),
            "type": self.classify_type(record.raw_type),
            "usage": self.resolve_usage(record.raw_usage, record.model_year, now),
            "length": self.resolve_length(record.raw_length),
        }
        if record.period is not None:
            labels["period"] = record.period
        return ClassifiedRecord(record, labels)

    def classify_record(self, record: Any, now: Now = None) -> ClassifiedRecord:
        if isinstance(record, ClassifiedRecord):
            return record
        if isinstance(record, AssetRecord):
            return self.classify_asset(record, now)
        if isinstance(record, IdleRecord):
            return self.classify_idle(record, now)
        if isinstance(record, RevenueRecord):
            return self.classify_revenue(record, now)
        raise TypeError(f"Cannot classify {type(record).__name__}")

    def classify_batch(self, records: Iterable[Any], now: Now = None) -> List[ClassifiedRecord]:
        now = self.reference_date(now)
        return [self.classify_record(record, now) for record in records]

    # --- Helpers ---

    def reference_date(self, now: Now = None) -> Union[date, datetime, int]:
        return self.clock() if now is None else now

    def _current_year(self, now: Now) -> int:
        now = self.reference_date(now)
        if isinstance(now, (date, datetime)):
            return now.year
        return int(now)

    def _parse_length(self, raw_length: Any) -> Optional[int]:
        if raw_length is None or isinstance(raw_length, bool):
            return None
        if isinstance(raw_length, int):
            return raw_length
        if isinstance(raw_length, float):
            return int(raw_length) if raw_length.is_integer() else None

        text = str(raw_length)
        for quote in ValueParser.QUOTE_CHARS:
            text = text.replace(quote, "")
        try:
            return int(text.strip())
        except ValueError:
            return None


_default_classifier = AssetClassifier()


def classify_type(raw_type: Any) -> str:
    return _default_classifier.classify_type(raw_type)


def classify_usage(model_year: Any, now: Now = None) -> str:
    return _default_classifier.classify_usage(model_year, now)


def classify_length(raw_length: Any) -> str:
    return _default_classifier.classify_length(raw_length)
