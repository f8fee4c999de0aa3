"""
Deadline Helper

Runs a provider call under a wall-clock budget.

On expiry the pending call is cancelled by asyncio.wait_for and the typed
timeout error built by `on_timeout` is raised instead. Any result the
cancelled call might still produce is never observed, so a timed-out call
cannot mutate caller state.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


async def run_with_deadline(
    call: Awaitable[T],
    timeout: float | None,
    on_timeout: Callable[[float], Exception],
) -> T:
    """
    Await `call`, giving up after `timeout` seconds.

    Args:
        call: Coroutine to await
        timeout: Budget in seconds (None or <= 0 disables the deadline)
        on_timeout: Factory for the exception raised when the budget expires

    Raises:
        Whatever `on_timeout` returns, when the deadline passes
    """
    if timeout is None or timeout <= 0:
        return await call
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        raise on_timeout(timeout) from None
