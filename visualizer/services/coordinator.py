"""
Query execution coordinator.

Turns a stream of request changes into query executions:

    idle -> debouncing -> fetching -> success | error
                 ^                        |
                 +------ next change -----+

Only the request present when the debounce timer fires is committed.
Committed requests are keyed by their stable serialization; fresh cache
entries short-circuit execution, identical in-flight requests share one
fetch, and a response is applied only if it belongs to the most recently
committed request.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from visualizer.core.config import settings
from visualizer.models.query import VisualizerQueryRequest, VisualizerQueryResult
from visualizer.services.cache import QueryResultCache
from visualizer.services.debounce import Debouncer
from visualizer.services.metrics import QueryMetrics
from visualizer.services.request_builder import has_filters, serialize_request

logger = logging.getLogger(__name__)

QueryRunner = Callable[[VisualizerQueryRequest], Awaitable[VisualizerQueryResult]]


class QueryStatus(str, Enum):
    """Coordinator lifecycle states."""
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    FETCHING = "fetching"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryState:
    """
    Snapshot of the coordinator, replaced on every transition.

    ``data`` is the result for the committed request (None while it is
    loading or after it failed). ``last_good_data`` is the most recent
    successful result of any request, for callers that want to keep showing
    it next to an error.
    """
    status: QueryStatus = QueryStatus.IDLE
    data: Optional[VisualizerQueryResult] = None
    last_good_data: Optional[VisualizerQueryResult] = None
    error: Optional[Exception] = None
    is_stale: bool = False
    request_key: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def is_loading(self) -> bool:
        """Fetching with nothing to show yet."""
        return self.status == QueryStatus.FETCHING and self.data is None

    @property
    def is_fetching(self) -> bool:
        return self.status == QueryStatus.FETCHING

    @property
    def is_debouncing(self) -> bool:
        return self.status == QueryStatus.DEBOUNCING

    @property
    def is_success(self) -> bool:
        return self.status == QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == QueryStatus.ERROR

    @property
    def is_empty(self) -> bool:
        return self.status == QueryStatus.SUCCESS and self.data is not None and self.data.row_count == 0


StateListener = Callable[[QueryState], None]


class QueryExecutionCoordinator:
    """Debounced, cached, out-of-order-safe query execution for one builder session."""

    def __init__(
        self,
        run_query: QueryRunner,
        debounce_seconds: Optional[float] = None,
        cache: Optional[QueryResultCache] = None,
    ):
        """
        Args:
            run_query: Coroutine function executing a request (e.g. VisualizerClient.run_query)
            debounce_seconds: Quiet period before a change is committed (defaults to settings)
            cache: Result cache (a new per-session cache by default)
        """
        delay = debounce_seconds if debounce_seconds is not None else settings.debounce_seconds
        self._run_query = run_query
        self._debouncer: Debouncer[Tuple[str, VisualizerQueryRequest]] = Debouncer(delay, self._commit)
        self._cache = cache if cache is not None else QueryResultCache()
        self._state = QueryState()
        self._listeners: List[StateListener] = []

        self._pending_key: Optional[str] = None
        self._committed: Optional[Tuple[str, VisualizerQueryRequest]] = None
        self._requested_seq = 0
        self._applied_seq = 0
        self._inflight: Dict[str, asyncio.Task] = {}
        self._watchers: Set[asyncio.Task] = set()
        self._closed = False

        self.metrics = QueryMetrics()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def cache(self) -> QueryResultCache:
        return self._cache

    @property
    def committed_request(self) -> Optional[VisualizerQueryRequest]:
        return self._committed[1] if self._committed else None

    @property
    def applied_seq(self) -> int:
        return self._applied_seq

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes) -> None:
        self._state = replace(self._state, updated_at=datetime.now(), **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Query state listener failed")

    def _settled_status(self, status: QueryStatus) -> QueryStatus:
        # A newer change is already waiting on the timer
        return QueryStatus.DEBOUNCING if self._debouncer.pending else status

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def submit(self, request: VisualizerQueryRequest) -> bool:
        """
        Offer the current request. Restarts the debounce timer when the
        serialized request differs from the last one offered.

        Returns:
            True if the timer was (re)started
        """
        if self._closed:
            return False
        key = serialize_request(request)
        if key == self._pending_key:
            return False
        self._pending_key = key
        self._debouncer.schedule((key, request))
        self._set_state(status=QueryStatus.DEBOUNCING)
        return True

    def flush(self) -> bool:
        """Commit the pending request now instead of waiting for the timer."""
        return self._debouncer.flush()

    def refetch(self) -> bool:
        """Re-execute the committed request, bypassing the cache."""
        if self._closed or self._committed is None:
            return False
        key, request = self._committed
        if not has_filters(request):
            return False
        self._cache.delete(key)
        self._requested_seq += 1
        self._set_state(status=QueryStatus.FETCHING, error=None, request_key=key)
        self._start_fetch(self._requested_seq, key, request)
        return True

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _commit(self, pending: Tuple[str, VisualizerQueryRequest]) -> None:
        key, request = pending
        self._requested_seq += 1
        seq = self._requested_seq
        self._committed = (key, request)

        if not has_filters(request):
            # An unconstrained query is never sent
            logger.debug("Skipping query execution: filter root has no rules")
            self.metrics.record_skipped()
            self._applied_seq = seq
            self._set_state(status=QueryStatus.IDLE, data=None, error=None, is_stale=False, request_key=key)
            return

        hit = self._cache.get(key)
        if hit is not None and not hit.is_stale:
            self.metrics.record_cache_hit()
            self._applied_seq = seq
            self._set_state(
                status=QueryStatus.SUCCESS,
                data=hit.value,
                last_good_data=hit.value,
                error=None,
                is_stale=False,
                request_key=key,
            )
            return

        if hit is not None:
            # Show the stale result while it is refreshed
            self.metrics.record_cache_hit(stale=True)
            self._set_state(status=QueryStatus.FETCHING, data=hit.value, error=None, is_stale=True, request_key=key)
        else:
            self._set_state(status=QueryStatus.FETCHING, data=None, error=None, is_stale=False, request_key=key)

        self._start_fetch(seq, key, request)

    def _start_fetch(self, seq: int, key: str, request: VisualizerQueryRequest) -> None:
        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.create_task(self._execute(key, request))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget_inflight(k, t))
        else:
            logger.debug("Joining in-flight execution of an identical request")

        watcher = asyncio.create_task(self._apply_when_done(seq, key, task))
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)

    def _forget_inflight(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            # Failure is reported through the watcher; mark it retrieved here
            logger.debug(f"In-flight query finished with error: {task.exception()}")

    async def _execute(self, key: str, request: VisualizerQueryRequest) -> VisualizerQueryResult:
        started = time.perf_counter()
        try:
            result = await self._run_query(request)
        except Exception:
            self.metrics.record_execution(time.perf_counter() - started, success=False)
            raise
        self.metrics.record_execution(time.perf_counter() - started, success=True, server_ms=result.execution_ms)
        # Superseded responses still fill the cache; the query is read-only
        self._cache.set(key, result)
        return result

    async def _apply_when_done(self, seq: int, key: str, task: asyncio.Task) -> None:
        try:
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if seq != self._requested_seq:
                self.metrics.record_superseded()
                logger.debug(f"Discarding error from superseded request #{seq}: {e}")
                return
            self._applied_seq = seq
            logger.warning(f"Query execution failed: {e}")
            self._set_state(
                status=self._settled_status(QueryStatus.ERROR),
                data=None,
                error=e,
                is_stale=False,
                request_key=key,
            )
            return

        if seq != self._requested_seq:
            self.metrics.record_superseded()
            logger.debug(f"Discarding result of superseded request #{seq} (latest #{self._requested_seq})")
            return

        self._applied_seq = seq
        self._set_state(
            status=self._settled_status(QueryStatus.SUCCESS),
            data=result,
            last_good_data=result,
            error=None,
            is_stale=False,
            request_key=key,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def wait_until_settled(self) -> QueryState:
        """Wait until no timer is pending and no execution is being awaited."""
        while True:
            await self._debouncer.wait()
            watchers = [w for w in self._watchers if not w.done()]
            if not watchers and not self._debouncer.pending:
                return self._state
            if watchers:
                await asyncio.wait(watchers)

    async def close(self) -> None:
        """Cancel the pending timer and abandon in-flight work (session teardown)."""
        self._closed = True
        self._debouncer.cancel()
        tasks = list(self._watchers) + list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
        self._watchers.clear()
        self._listeners.clear()
