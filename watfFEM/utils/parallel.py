"""
Thread-level parallelism for per-cell work with a simple API.

Cell-local assembly only reads shared inputs (mesh, element,
coefficients) and writes its own result, so it can run on a thread
pool. Results are returned in task order, which keeps the serial
accumulation that follows deterministic.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List


def resolve_n_workers(n_workers: int) -> int:
    """Map 0 or negative values to the number of CPUs."""
    if n_workers <= 0:
        return os.cpu_count() or 1
    return n_workers


def run_parallel(tasks: Iterable, n_workers: int, func: Callable[[Any], Any]) -> List[Any]:
    """
    Run func over tasks with n_workers threads.
    - If n_workers == 1, run sequentially.
    - Otherwise use ThreadPoolExecutor.map (order preserved).
    """
    tasks = list(tasks)
    n_workers = resolve_n_workers(n_workers)
    if n_workers <= 1 or len(tasks) <= 1:
        return [func(t) for t in tasks]

    with ThreadPoolExecutor(max_workers=n_workers) as pool:
        return list(pool.map(func, tasks))
