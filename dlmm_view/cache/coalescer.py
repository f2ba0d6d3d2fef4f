"""
Single-flight loading for cache misses.

Concurrent misses on one cache key elect a leader that loads the value;
the rest wait on the leader's outcome. Before loading, the leader asks the
cache again, since a previous leader may have stored the value between the
caller's miss and its election. Outcomes are handed to waiters only and
never kept, so a failed load is retried by the next miss.
"""
import threading
import time
import logging
from typing import Dict, Optional, Callable, Any, Tuple
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightLoad:
    """One cache key being loaded right now."""
    key: str
    finished: threading.Event = field(default_factory=threading.Event)
    value: Optional[Any] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.monotonic)
    waiters: int = 0

    def outcome(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value


class RequestCoalescer:
    """
    Collapses concurrent loads of one cache key into a single provider call.

    Usage:
        coalescer = RequestCoalescer()
        key = make_cache_key("pool_metadata", pool=pool)
        metadata = coalescer.run(
            key,
            lambda: provider.fetch_metadata(pool),
            recheck=lambda: cache.peek(key),
        )
    """

    def __init__(self, timeout: float = 30.0):
        """
        Args:
            timeout: Max seconds a waiter blocks on the leader's load
        """
        self._loads: Dict[str, InFlightLoad] = {}
        self._lock = threading.Lock()
        self._timeout = timeout
        self._stats = {"loads": 0, "coalesced": 0, "late_hits": 0}

    def run(
        self,
        key: str,
        load_fn: Callable[[], Any],
        recheck: Optional[Callable[[], Optional[Any]]] = None,
    ) -> Any:
        """
        Load ``key`` with ``load_fn`` unless a load for it is already running.

        Args:
            key: Cache key being loaded
            load_fn: Provider call that produces the value
            recheck: Cache lookup the leader tries first; a non-None result
                is returned without calling ``load_fn``

        Raises:
            TimeoutError: If a waiter gives up on the leader
            Exception: Whatever ``load_fn`` raised, for leader and waiters alike
        """
        load, is_leader = self._join(key)
        if is_leader:
            return self._lead(load, load_fn, recheck)
        return self._wait(load)

    def _join(self, key: str) -> Tuple[InFlightLoad, bool]:
        with self._lock:
            load = self._loads.get(key)
            if load is None:
                load = self._loads[key] = InFlightLoad(key=key)
                return load, True
            load.waiters += 1
            self._stats["coalesced"] += 1
        logger.debug(f"Waiting on in-flight load of {key} (waiters: {load.waiters})")
        return load, False

    def _lead(
        self,
        load: InFlightLoad,
        load_fn: Callable[[], Any],
        recheck: Optional[Callable[[], Optional[Any]]],
    ) -> Any:
        try:
            cached = recheck() if recheck is not None else None
            if cached is not None:
                self._count("late_hits")
                logger.debug(f"Value for {load.key} arrived before the load started")
                load.value = cached
            else:
                self._count("loads")
                load.value = load_fn()
        except Exception as e:
            load.error = e
            logger.debug(f"Load of {load.key} failed: {e}")
        finally:
            with self._lock:
                self._loads.pop(load.key, None)
            load.finished.set()
        return load.outcome()

    def _wait(self, load: InFlightLoad) -> Any:
        if not load.finished.wait(timeout=self._timeout):
            logger.error(f"Timed out waiting on in-flight load: {load.key}")
            raise TimeoutError(f"In-flight load of {load.key} did not finish within {self._timeout}s")
        return load.outcome()

    def _count(self, name: str) -> None:
        with self._lock:
            self._stats[name] += 1

    @property
    def active_calls(self) -> int:
        """Number of loads currently running."""
        with self._lock:
            return len(self._loads)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        with self._lock:
            return {
                "active_calls": len(self._loads),
                "active_keys": list(self._loads),
                **self._stats,
            }
