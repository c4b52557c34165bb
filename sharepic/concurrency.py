"""
Helpers for calling blocking backend clients from async request handlers.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, TypeVar

from sharepic.errors import BackendTimeout

T = TypeVar("T")


async def run_blocking(
    func: Callable[..., T], *args: Any, timeout: float, **kwargs: Any
) -> T:
    """
    Run `func` in a worker thread, bounded by `timeout` seconds.

    The worker thread is not interrupted on timeout; the caller stops
    waiting and gets a BackendTimeout.
    """
    call = functools.partial(func, *args, **kwargs)
    try:
        return await asyncio.wait_for(asyncio.to_thread(call), timeout=timeout)
    except asyncio.TimeoutError as exc:
        name = getattr(func, "__qualname__", repr(func))
        raise BackendTimeout(f"{name} timed out after {timeout:g}s") from exc
