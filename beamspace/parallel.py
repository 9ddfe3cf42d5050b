# parallel.py
# Ordered data-parallel map for the batch entry points.

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Below this many items the thread pool costs more than it saves.
INLINE_THRESHOLD = 32


def parallel_map(
    func: Callable[[T], R],
    items: Iterable[T],
    workers: Optional[int] = None,
) -> List[R]:
    """
    Apply `func` to every item, returning results in input order.

    Each call must only read shared state. The first exception raised by `func`
    propagates to the caller.
    """
    items = list(items)
    if workers is None:
        from .config import get_settings
        workers = get_settings().workers
    if workers == 1 or len(items) < INLINE_THRESHOLD:
        return [func(it) for it in items]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(func, items))
