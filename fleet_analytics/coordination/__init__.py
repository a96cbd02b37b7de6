# ==============================================
# COORDINATION
# ==============================================
#
# Per-request fan-out over the two data sources.
#
# Modules:
# --------
# - outcome.py     → SourceResult / Unavailable, source exceptions
# - coordinator.py → SourceCoordinator and the request state machine
#
# ==============================================

from .outcome import (
    GENERIC_ERROR_MESSAGE,
    NoDataError,
    PrimarySourceError,
    SourceError,
    SourceResult,
    Unavailable,
)
from .coordinator import (
    CoordinatedFetch,
    IllegalTransitionError,
    RequestLifecycle,
    RequestState,
    SourceCoordinator,
)

__all__ = [
    "GENERIC_ERROR_MESSAGE",
    "NoDataError",
    "PrimarySourceError",
    "SourceError",
    "SourceResult",
    "Unavailable",
    "CoordinatedFetch",
    "IllegalTransitionError",
    "RequestLifecycle",
    "RequestState",
    "SourceCoordinator",
]
