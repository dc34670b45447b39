import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, Dict, List, NamedTuple, Optional

from core.logging_config import logger
from core.utils import sort_desc_nulls_last

DEFAULT_TASK_TIMEOUT = 60.0

_executor = None
_executor_lock = threading.Lock()


def get_executor() -> ThreadPoolExecutor:
    """Process-wide worker pool sized to the CPU count."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=max(1, os.cpu_count() or 1), thread_name_prefix="fanout")
        return _executor


def shutdown_executor():
    global _executor
    with _executor_lock:
        if _executor is not None:
            _executor.shutdown(wait=False, cancel_futures=True)
            _executor = None


class FanoutResult(NamedTuple):
    rows: list
    statuses: Dict[str, str]


def fan_out(backends: List[str], op: Callable[[str], list], timeout: float = DEFAULT_TASK_TIMEOUT,
            sort_key: Optional[Callable] = None, executor: Optional[ThreadPoolExecutor] = None) -> FanoutResult:
    """
    Run op(backend) for every backend concurrently and merge the rows.

    Outcomes are collected in submission order. Every backend gets its own
    timeout, counted from when its result is awaited. A backend that times out or
    raises contributes no rows and gets a TIMEOUT / ERROR status; its peers are
    unaffected. When sort_key is given, the merged rows are sorted by it
    descending with None keys last.
    """
    if not backends:
        return FanoutResult([], {})

    pool = executor or get_executor()
    started = time.monotonic()
    futures = [(name, pool.submit(op, name)) for name in backends]

    merged = []
    statuses = {}
    for name, future in futures:
        try:
            rows = future.result(timeout=timeout) or []
            merged.extend(rows)
            statuses[name] = f"OK ({len(rows)} rows)"
            logger.debug(f"[FANOUT:{name}] Retrieved {len(rows)} rows.")
        except FuturesTimeoutError:
            future.cancel()
            statuses[name] = "TIMEOUT"
            logger.error(f"[FANOUT:{name}] Timed out after {timeout}s")
        except Exception as e:
            statuses[name] = f"ERROR: {e}"
            logger.exception(f"[THREAD-ERROR] {name} query failed: {e}")

    if sort_key is not None:
        merged = sort_desc_nulls_last(merged, sort_key)

    logger.info(f"[FANOUT] {len(merged)} rows from {len(backends)} backends in {int((time.monotonic() - started) * 1000)}ms")
    return FanoutResult(merged, statuses)
