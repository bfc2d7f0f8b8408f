### `sp_signals/recompute.py`: single-slot, latest-request-wins result cell

from __future__ import annotations
import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, MutableMapping, Optional, Tuple
from loguru import logger

from .errors import StaleComputationError

class LatestResultCell:
    """
    Holds the result of the most recent request only.

    Every `submit` gets a larger request id. A computation that finishes after
    a newer request was submitted is discarded, and pending superseded work is
    cancelled when it has not started yet.
    """

    def __init__(self, max_workers: int = 2):
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="recompute")
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._latest_requested = 0
        self._stored: Optional[Tuple[int, Any]] = None
        self._failed: Optional[Tuple[int, BaseException]] = None
        self._futures: dict[int, Future] = {}

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> int:
        with self._lock:
            request_id = next(self._ids)
            self._latest_requested = request_id
            for old_id, fut in list(self._futures.items()):
                if fut.done():
                    del self._futures[old_id]
                elif fut.cancel():
                    logger.debug(f"Cancelled superseded request {old_id}")
                    del self._futures[old_id]
            fut = self._pool.submit(self._run, request_id, fn, args, kwargs)
            self._futures[request_id] = fut
        return request_id

    def _run(self, request_id: int, fn: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        try:
            result = fn(*args, **kwargs)
            self._publish(request_id, result)
            return result
        except StaleComputationError as e:
            logger.debug(f"Discarded stale result: {e}")
            return None
        except Exception as e:
            with self._lock:
                if request_id == self._latest_requested:
                    self._failed = (request_id, e)
            raise
        finally:
            with self._lock:
                self._futures.pop(request_id, None)

    def _publish(self, request_id: int, result: Any) -> None:
        with self._lock:
            if request_id < self._latest_requested:
                raise StaleComputationError(request_id, self._latest_requested)
            if self._stored is not None and self._stored[0] > request_id:
                raise StaleComputationError(request_id, self._stored[0])
            self._stored = (request_id, result)

    def latest(self) -> Optional[Tuple[int, Any]]:
        with self._lock:
            return self._stored

    @property
    def pending(self) -> int:
        """Number of submitted requests still tracked (queued or running)."""
        with self._lock:
            return len(self._futures)

    @property
    def latest_request_id(self) -> int:
        with self._lock:
            return self._latest_requested

    def wait(self, timeout: float | None = None) -> Optional[Tuple[int, Any]]:
        """Block until the newest request finishes; re-raise its error, if any."""
        with self._lock:
            fut = self._futures.get(self._latest_requested)
        if fut is not None:
            fut.result(timeout=timeout)
        with self._lock:
            if self._failed is not None and self._failed[0] == self._latest_requested:
                raise self._failed[1]
            return self._stored

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=True)

def session_cell(state: MutableMapping, key: str = "recompute_cell", max_workers: int = 2) -> LatestResultCell:
    """Return the cell kept in `state`, creating it on first use (one per UI session)."""
    if key not in state:
        state[key] = LatestResultCell(max_workers=max_workers)
    return state[key]
