from typing import Any, Iterable, Mapping, Optional

from .field_normalizer import FieldNormalizer


class RowNormalizer:
    # Driver bookkeeping that never belongs on a record
    IGNORED_KEYS = {"_id"}

    def __init__(self, field_normalizer: Optional[FieldNormalizer] = None):
        self.field_normalizer = field_normalizer or FieldNormalizer()

    def normalize(self, raw_row: Mapping[str, Any]) -> dict:
        if not isinstance(raw_row, Mapping):
            raise ValueError("Row must be a mapping")

        row = {}
        for key, value in raw_row.items():
            if key in self.IGNORED_KEYS:
                continue
            canonical = self.field_normalizer.normalize(str(key))
            row[canonical] = self._clean_value(value)
        return row

    def normalize_batch(self, rows: Iterable[Mapping[str, Any]]) -> list[dict]:
        return [self.normalize(row) for row in rows]

    def _clean_value(self, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value if value else None
        return value
