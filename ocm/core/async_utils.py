from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

import anyio

T = TypeVar("T")


def run_async(coro: Coroutine[object, object, T], *, timeout: float | None = None) -> T:
    """
    Run a coroutine to completion from sync code (CLI commands).

    - timeout bounds the whole command, on top of the per-request gateway timeout.
    - Raises if called from an async context in the same thread (use await instead).
    """

    async def _runner() -> T:
        if timeout is not None:
            with anyio.fail_after(timeout):
                return await coro
        return await coro

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return anyio.run(_runner)
    coro.close()
    raise RuntimeError("run_async called from async context; use await instead")
