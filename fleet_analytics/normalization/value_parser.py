import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


class ValueParser:
    NULL_VARIANTS = {"null", "none", "nil", "n/a", "na", ""}
    QUOTE_CHARS = ("'", '"', "’", "”")

    DATE_FORMATS = [
        "%Y-%m-%d",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%d %H:%M:%S",
        "%m/%d/%Y",
        "%Y/%m/%d",
    ]

    PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})")

    @classmethod
    def is_null(cls, value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, float) and value != value:
            return True
        if isinstance(value, str) and value.strip().lower() in cls.NULL_VARIANTS:
            return True
        return False

    @classmethod
    def to_text(cls, value: Any) -> Optional[str]:
        # Only None and blank strings are missing; "N/A" is a real upstream value here
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @classmethod
    def to_int(cls, value: Any) -> Optional[int]:
        if cls.is_null(value) or isinstance(value, bool):
            return None

        if isinstance(value, int):
            return value

        if isinstance(value, (float, Decimal)):
            try:
                return int(value)
            except (ValueError, OverflowError, InvalidOperation):
                return None

        text = str(value).strip()
        for quote in cls.QUOTE_CHARS:
            text = text.replace(quote, "")
        text = text.strip()

        try:
            return int(text)
        except ValueError:
            pass

        try:
            return int(float(text))
        except (ValueError, OverflowError):
            return None

    @classmethod
    def to_float(cls, value: Any) -> Optional[float]:
        if cls.is_null(value) or isinstance(value, bool):
            return None

        try:
            number = float(value)
        except (ValueError, TypeError, OverflowError):
            return None

        if number != number or number in (float("inf"), float("-inf")):
            return None
        return number

    @classmethod
    def to_date(cls, value: Any) -> Optional[date]:
        if cls.is_null(value):
            return None

        if isinstance(value, datetime):
            return value.date()

        if isinstance(value, date):
            return value

        text = str(value).strip()
        for fmt in cls.DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        return None

    @classmethod
    def to_period(cls, value: Any) -> Optional[str]:
        """Return a ``YYYY-MM`` period key for a date or period-like string."""
        if cls.is_null(value):
            return None

        if isinstance(value, (date, datetime)):
            return f"{value.year:04d}-{value.month:02d}"

        match = cls.PERIOD_PATTERN.match(str(value).strip())
        if not match:
            return None

        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            return None
        return f"{year:04d}-{month:02d}"
