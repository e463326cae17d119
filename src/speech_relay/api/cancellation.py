"""
Client disconnect handling for in-flight upstream calls.

A plain (non-streaming) route is not cancelled by the ASGI server when the
caller hangs up, so a waiting upstream call would run to completion for
nobody. `run_until_disconnect` runs the upstream call as a task and polls
the connection while it waits; if the caller is gone the task is cancelled,
which aborts the httpx request and returns its connection to the pool.

Usage:
    result = await run_until_disconnect(
        request,
        service.synthesize(synth_request),
        poll_interval=config.server.disconnect_poll_s,
    )
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Protocol, TypeVar

from speech_relay.services.errors import ClientDisconnectedError

T = TypeVar("T")


class SupportsDisconnect(Protocol):
    """The part of starlette.requests.Request used here."""

    async def is_disconnected(self) -> bool: ...


async def run_until_disconnect(
    request: SupportsDisconnect,
    awaitable: Awaitable[T],
    poll_interval: float,
) -> T:
    """
    Await `awaitable`, cancelling it if the caller disconnects first.

    Args:
        request: The inbound request (polled for disconnect).
        awaitable: The upstream call.
        poll_interval: Seconds between disconnect checks.

    Returns:
        The awaitable's result.

    Raises:
        ClientDisconnectedError: If the caller disconnected first.
        Exception: Whatever the awaitable raised.
    """
    task: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
    delivered = False
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if task in done:
                delivered = True
                return task.result()
            disconnected = await request.is_disconnected()
            # Finished during the check: the result still goes to the caller.
            if task.done():
                delivered = True
                return task.result()
            if disconnected:
                raise ClientDisconnectedError()
    finally:
        if not task.done():
            task.cancel()
            # Let the cancellation unwind (closing the upstream connection)
            # before returning; asyncio.wait never raises the task's error.
            await asyncio.wait({task})
        if not delivered:
            await _discard(task)


async def _discard(task: "asyncio.Future[Any]") -> None:
    """Retrieve an abandoned task's outcome, closing any stream it opened."""
    if task.cancelled() or task.exception() is not None:
        return
    aclose = getattr(task.result(), "aclose", None)
    if aclose is not None:
        await aclose()
