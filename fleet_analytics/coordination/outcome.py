# ==============================================
# Source Outcomes (Data Classes)
# ==============================================
#
# PURPOSE:
#   What one query against one data source produced: a value,
#   or an explicit Unavailable describing why not.
#
# WHY THIS FILE EXISTS:
#   A missing secondary figure must be distinguishable from a
#   legitimately empty one. Carrying Unavailable in the result
#   lets the dashboard branch on `ok` instead of guessing from
#   None values.
#
# EXCEPTIONS:
# -----------
# - SourceError          → Base for data-source failures
# - PrimarySourceError   → Inventory source failed; request is lost
# - NoDataError          → An export matched zero rows
#
# CLASSES:
# --------
# - Unavailable (dataclass)
#     source, query, reason, error_type
#
# - SourceResult (dataclass, generic)
#     Either value or unavailable is set, never both.
#     - available(source, query, value) (classmethod)
#     - failed(source, query, error) (classmethod)
#     - ok -> bool
#     - value_or(default)
#
# ==============================================

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

GENERIC_ERROR_MESSAGE = "Failed to load fleet data. Please try again later."


class SourceError(Exception):
    """A data source could not answer."""

    def __init__(self, source: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
        self.cause = cause


class PrimarySourceError(SourceError):
    """
    The inventory source failed or timed out.

    Fleet counts cannot be produced without it, so the whole request
    fails. The message shown to users hides the cause unless running
    outside production.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None, query: Optional[str] = None):
        super().__init__("inventory", message, cause)
        self.query = query

    def user_message(self, debug: bool = False) -> str:
        if not debug:
            return GENERIC_ERROR_MESSAGE
        detail = self.message
        if self.cause is not None:
            detail = f"{detail} ({type(self.cause).__name__}: {self.cause})"
        return f"{GENERIC_ERROR_MESSAGE} Detail: {detail}"


class NoDataError(Exception):
    """An export found nothing to export."""

    def __init__(self, report: str, message: str = "No data found"):
        super().__init__(f"{report}: {message}")
        self.report = report
        self.message = message


@dataclass(frozen=True)
class Unavailable:
    source: str
    query: str
    reason: str
    error_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "query": self.query,
            "reason": self.reason,
            "error_type": self.error_type,
        }


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    source: str
    query: str
    value: Optional[T] = None
    unavailable: Optional[Unavailable] = None

    @property
    def ok(self) -> bool:
        return self.unavailable is None

    def value_or(self, default):
        return self.value if self.ok else default

    @classmethod
    def available(cls, source: str, query: str, value: T) -> "SourceResult[T]":
        return cls(source=source, query=query, value=value)

    @classmethod
    def failed(cls, source: str, query: str, error: Any) -> "SourceResult[T]":
        if isinstance(error, BaseException):
            reason = str(error) or type(error).__name__
            error_type = type(error).__name__
        else:
            reason, error_type = str(error), None
        return cls(
            source=source,
            query=query,
            unavailable=Unavailable(source, query, reason, error_type),
        )

    def to_dict(self) -> Dict[str, Any]:
        status = {"source": self.source, "query": self.query, "ok": self.ok}
        if not self.ok:
            status["reason"] = self.unavailable.reason
        return status
