"""Bridges between the synchronous services and asyncio callers.

All store work is synchronous sqlite3 code. The async variants run it on
worker threads with asyncio.to_thread() and translate task cancellation
into the threading.Event the synchronous code polls between features, so
an open batch is rolled back instead of being left half written.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from typing import TYPE_CHECKING

from gpkg_helper.core import exceptions

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator


def check_cancelled(cancel_event: threading.Event | None) -> None:
    """Raise OperationCancelledError if the event is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise exceptions.OperationCancelledError("Operation was cancelled")


async def run_cancellable[T](
    func: Callable[..., T],
    *args: object,
    **kwargs: object,
) -> T:
    """Run ``func`` on a worker thread with a cooperative cancel event.

    ``func`` must accept a ``cancel_event`` keyword argument. When the
    awaiting task is cancelled the event is set, the worker is awaited
    until it has observed the event and cleaned up, and the cancellation
    is re-raised.

    Args:
        func: Synchronous callable to run.
        *args: Positional arguments for ``func``.
        **kwargs: Keyword arguments for ``func``.

    Returns:
        Whatever ``func`` returns.
    """
    cancel_event = threading.Event()
    worker = asyncio.ensure_future(
        asyncio.to_thread(func, *args, cancel_event=cancel_event, **kwargs)
    )
    try:
        return await asyncio.shield(worker)
    except asyncio.CancelledError:
        cancel_event.set()
        with contextlib.suppress(exceptions.OperationCancelledError):
            await worker
        raise


_EXHAUSTED = object()


async def iterate_in_thread[T](
    factory: Callable[[threading.Event], Iterator[T]],
) -> AsyncIterator[T]:
    """Drive a blocking iterator from async code, one item per thread hop.

    Args:
        factory: Builds the iterator from a cancel event. It is called on
            a worker thread.

    Yields:
        Items of the iterator, in order.
    """
    cancel_event = threading.Event()
    iterator = await asyncio.to_thread(factory, cancel_event)
    try:
        while True:
            item = await asyncio.to_thread(next, iterator, _EXHAUSTED)
            if item is _EXHAUSTED:
                break
            yield item  # type: ignore[misc]
    finally:
        cancel_event.set()
        close = getattr(iterator, "close", None)
        if close is not None:
            await asyncio.to_thread(close)
