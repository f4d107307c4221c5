"""Bounded, order-preserving parallel map over a ``ThreadPoolExecutor``.

Used to classify several statement sources at once. Mapper calls share no
mutable state, so results are simply collected and returned in input order.

- ``concurrency`` caps the number of mapper calls in flight.
- The first mapper error propagates and cancels work that has not started;
  partial results are discarded, so callers never see half a batch.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
    thread_name_prefix: str = "budget-ledger",
) -> list[OutT]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` workers."""

    if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    it = enumerate(iterable)
    results: dict[int, OutT] = {}
    future_to_idx: dict[Future[OutT], int] = {}

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix=thread_name_prefix) as pool:

        def _submit() -> bool:
            try:
                idx, item = next(it)
            except StopIteration:
                return False
            future_to_idx[pool.submit(mapper, item)] = idx
            return True

        # Prime the window
        for _ in range(concurrency):
            if not _submit():
                break

        active: set[Future[OutT]] = set(future_to_idx)
        while active:
            done, active = wait(active, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = future_to_idx.pop(fut)
                try:
                    results[idx] = fut.result()
                except Exception:
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise
            # Top up one task per completion.
            for _ in range(len(done)):
                if not _submit():
                    break
            active |= set(future_to_idx) - active

    return [results[i] for i in sorted(results)]


__all__ = ["p_map"]
