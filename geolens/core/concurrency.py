"""
Thread-level coordination primitives shared by the download and parse pipelines.

- ``CancellationToken``: cooperative cancellation checked at chunk/line boundaries
- ``SingleFlight``: collapses concurrent calls for the same key into one execution
"""

import threading
from concurrent.futures import Future
from typing import Callable, Dict, Hashable, Optional, Tuple, TypeVar

from geolens.core.exceptions import OperationCancelledError
from geolens.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    Cooperative cancellation flag for one pipeline run.

    Workers call ``raise_if_cancelled()`` between units of work; the caller
    calls ``cancel()`` from any thread.
    """

    def __init__(self, label: Optional[str] = None):
        self.label = label
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(
                f"Operation cancelled{f' for {self.label}' if self.label else ''}",
                details={"dataset_id": self.label},
            )


class SingleFlight:
    """
    Ensure at most one in-flight execution per key.

    The first caller for a key runs the function; callers arriving while it
    runs block on the same future and receive its result (or its exception).
    Nothing is remembered once the call finishes, so memoization is left
    to the caller.

    Example:
        flight = SingleFlight()
        result = flight.do("GSE12345", lambda: expensive_parse("GSE12345"))
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[Hashable, Future] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> T:
        """Run ``fn`` for ``key`` unless a run is already in flight."""
        future, leader = self._join(key)
        if not leader:
            logger.debug(f"Joining in-flight call for {key}")
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._calls.pop(key, None)

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls

    def _join(self, key: Hashable) -> Tuple[Future, bool]:
        with self._lock:
            future = self._calls.get(key)
            if future is not None:
                return future, False
            future = Future()
            self._calls[key] = future
            return future, True
