# ==============================================
# SourceCoordinator
# ==============================================
#
# PURPOSE:
#   Run one request's queries against both data sources and hand
#   back everything the presentation layer needs to merge.
#
# WHY THIS CLASS EXISTS:
#   The two sources have different failure contracts:
#     - Inventory (primary): any failure or timeout fails the
#       request, and the analytics source is then not queried.
#     - Analytics (secondary): each failed or timed-out query
#       becomes an Unavailable result and the request goes on.
#   Each request walks an explicit state machine so a request
#   can never merge before both phases are joined.
#
#       INIT → FETCH_PRIMARY → FETCH_SECONDARY → MERGE → DONE
#                    └──────→ ERROR (terminal)
#
# CLASS: SourceCoordinator
# ------------------------
#   Stateful — owns one thread pool per source, sized to that
#   source's connection pool. Stores are injected, never created.
#
#   Constructor:
#   ------------
#   - __init__(inventory, analytics, primary_timeout=60, secondary_timeout=30)
#
#   Methods:
#   --------
#   - fetch(primary_queries, secondary_queries) -> CoordinatedFetch
#       Queries are {name: callable(store)}. Queries of one source
#       run concurrently and are joined with that source's timeout.
#       No retries.
#
#   - close() -> None
#       Shut both thread pools down without waiting.
#
# ==============================================

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from .outcome import PrimarySourceError, SourceResult

logger = logging.getLogger(__name__)

Query = Callable[[Any], Any]


class RequestState(str, Enum):
    INIT = "init"
    FETCH_PRIMARY = "fetch_primary"
    FETCH_SECONDARY = "fetch_secondary"
    MERGE = "merge"
    DONE = "done"
    ERROR = "error"


TRANSITIONS = {
    RequestState.INIT: {RequestState.FETCH_PRIMARY},
    RequestState.FETCH_PRIMARY: {RequestState.FETCH_SECONDARY, RequestState.ERROR},
    RequestState.FETCH_SECONDARY: {RequestState.MERGE},
    RequestState.MERGE: {RequestState.DONE},
    RequestState.DONE: set(),
    RequestState.ERROR: set(),
}


class IllegalTransitionError(RuntimeError):
    pass


class RequestLifecycle:
    """Tracks one request through the coordinator's states."""

    def __init__(self):
        self.state = RequestState.INIT
        self.history: List[RequestState] = [RequestState.INIT]

    def advance(self, target: RequestState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise IllegalTransitionError(
                f"Illegal transition {self.state.value} -> {target.value}"
            )
        self.state = target
        self.history.append(target)

    @property
    def finished(self) -> bool:
        return not TRANSITIONS[self.state]


@dataclass
class CoordinatedFetch:
    """Everything one request fetched, ready to merge."""

    primary: Dict[str, Any] = field(default_factory=dict)
    secondary: Dict[str, SourceResult] = field(default_factory=dict)
    lifecycle: RequestLifecycle = field(default_factory=RequestLifecycle)

    @property
    def state(self) -> RequestState:
        return self.lifecycle.state

    @property
    def degraded(self) -> bool:
        return any(not result.ok for result in self.secondary.values())

    def sources(self) -> Dict[str, Any]:
        return {
            "inventory": {"ok": True, "queries": sorted(self.primary)},
            "analytics": {name: result.to_dict() for name, result in self.secondary.items()},
        }


class SourceCoordinator:
    """
    Fans each request's queries out per source and applies each
    source's failure contract.
    """

    def __init__(
        self,
        inventory,
        analytics,
        primary_timeout: float = 60.0,
        secondary_timeout: float = 30.0,
    ):
        self.inventory = inventory
        self.analytics = analytics
        self.primary_timeout = primary_timeout
        self.secondary_timeout = secondary_timeout
        self._primary_pool = ThreadPoolExecutor(
            max_workers=max(1, getattr(inventory, "pool_size", 1)),
            thread_name_prefix="inventory",
        )
        self._secondary_pool = ThreadPoolExecutor(
            max_workers=max(1, getattr(analytics, "pool_size", 1)),
            thread_name_prefix="analytics",
        )

    def fetch(
        self,
        primary_queries: Mapping[str, Query],
        secondary_queries: Optional[Mapping[str, Query]] = None,
    ) -> CoordinatedFetch:
        """
        Run one request's queries.

        Args:
            primary_queries: {name: callable(inventory_store)}
            secondary_queries: {name: callable(analytics_store)}

        Returns:
            CoordinatedFetch in state DONE

        Raises:
            PrimarySourceError: If any primary query fails or times out
        """
        result = CoordinatedFetch()
        lifecycle = result.lifecycle

        # Step 1: Primary source; any failure ends the request here
        lifecycle.advance(RequestState.FETCH_PRIMARY)
        try:
            result.primary = self._run_primary(primary_queries)
        except PrimarySourceError:
            lifecycle.advance(RequestState.ERROR)
            raise

        # Step 2: Secondary source; failures become Unavailable
        lifecycle.advance(RequestState.FETCH_SECONDARY)
        result.secondary = self._run_secondary(secondary_queries or {})

        # Step 3: Hand back for merging
        lifecycle.advance(RequestState.MERGE)
        lifecycle.advance(RequestState.DONE)
        return result

    def _run_primary(self, queries: Mapping[str, Query]) -> Dict[str, Any]:
        futures = {
            self._primary_pool.submit(query, self.inventory): name
            for name, query in queries.items()
        }
        if not futures:
            return {}

        done, not_done = wait(futures, timeout=self.primary_timeout, return_when=FIRST_EXCEPTION)

        for future in done:
            error = future.exception()
            if error is not None:
                for pending in not_done:
                    pending.cancel()
                name = futures[future]
                logger.error("✗ Inventory query '%s' failed: %s", name, error, exc_info=error)
                raise PrimarySourceError(f"query '{name}' failed", cause=error, query=name)

        if not_done:
            for pending in not_done:
                pending.cancel()
            names = sorted(futures[f] for f in not_done)
            logger.error(
                "✗ Inventory queries %s timed out after %.1fs", names, self.primary_timeout
            )
            raise PrimarySourceError(
                f"queries {names} timed out after {self.primary_timeout}s",
                cause=TimeoutError(f"timed out after {self.primary_timeout}s"),
                query=names[0],
            )

        return {futures[f]: f.result() for f in done}

    def _run_secondary(self, queries: Mapping[str, Query]) -> Dict[str, SourceResult]:
        futures = {
            self._secondary_pool.submit(query, self.analytics): name
            for name, query in queries.items()
        }
        if not futures:
            return {}

        done, not_done = wait(futures, timeout=self.secondary_timeout)
        results: Dict[str, SourceResult] = {}

        for future in done:
            name = futures[future]
            error = future.exception()
            if error is None:
                results[name] = SourceResult.available("analytics", name, future.result())
            else:
                logger.warning("⚠ Analytics query '%s' unavailable: %s", name, error)
                results[name] = SourceResult.failed("analytics", name, error)

        for future in not_done:
            future.cancel()
            name = futures[future]
            reason = f"timed out after {self.secondary_timeout}s"
            logger.warning("⚠ Analytics query '%s' unavailable: %s", name, reason)
            results[name] = SourceResult.failed("analytics", name, reason)

        # Keep the caller's query order
        return {name: results[name] for name in queries}

    def close(self) -> None:
        self._primary_pool.shutdown(wait=False, cancel_futures=True)
        self._secondary_pool.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
