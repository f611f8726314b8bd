from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, TypeVar

from updown.errors import ExternalCallTimeout

T = TypeVar("T")

# Calls that time out keep running in the background; the pool only bounds how
# many of them can pile up.
_POOL = ThreadPoolExecutor(max_workers=8, thread_name_prefix="updown-io")


def call_with_timeout(fn: Callable[..., T], timeout: float, *args: Any, **kwargs: Any) -> T:
    future = _POOL.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as e:
        future.cancel()
        name = getattr(fn, "__qualname__", repr(fn))
        raise ExternalCallTimeout(f"{name} timed out after {timeout:.1f}s") from e
