"""Concurrency helpers shared by the ingestion service and the API layer.

Two patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release.  Bulk ingestion uses it to fan out many
   independent create operations without flooding the embedding endpoint.

2. **cancel_on_disconnect** -- races an awaitable against the client
   connection.  When the client goes away the in-flight task is cancelled,
   which propagates through whichever outbound call (embedding provider or
   vector index) it is currently suspended on.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Protocol, TypeVar

import structlog

from embedding_service.utils.errors import RequestCancelledError
from embedding_service.utils.logging import get_logger

_T = TypeVar("_T")

_DISCONNECT_POLL_INTERVAL = 0.25  # seconds

_logger: structlog.BoundLogger = get_logger(__name__)


class SupportsDisconnect(Protocol):
    """Anything that can report whether its client has gone away (Starlette ``Request``)."""

    async def is_disconnected(self) -> bool: ...


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` of them at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding how many awaitables run simultaneously.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def cancel_on_disconnect(
    request: SupportsDisconnect,
    awaitable: Awaitable[_T],
    poll_interval: float = _DISCONNECT_POLL_INTERVAL,
) -> _T:
    """Await *awaitable*, cancelling it if the client disconnects first.

    Raises
    ------
    RequestCancelledError
        If the client disconnected before the work finished.  The work
        task has been cancelled and awaited by the time this is raised.
    """
    work: asyncio.Future[Any] = asyncio.ensure_future(awaitable)

    async def _watch() -> bool:
        while not work.done():
            if await request.is_disconnected():
                return True
            await asyncio.sleep(poll_interval)
        return False

    watcher = asyncio.create_task(_watch())
    try:
        done, _pending = await asyncio.wait(
            {work, watcher}, return_when=asyncio.FIRST_COMPLETED
        )
        if work in done:
            return work.result()

        if watcher.result():
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)
            _logger.info("request_cancelled_by_client")
            raise RequestCancelledError()

        return await work
    finally:
        watcher.cancel()
        if not work.done():
            work.cancel()
