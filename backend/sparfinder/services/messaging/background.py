# backend/sparfinder/services/messaging/background.py
"""
Bounded runner for fire-and-forget work.

Post-send read marking and notification fan-out must not delay the
response to the client, and their failures must not reach it. Each job
runs as a detached task behind a semaphore with its own error boundary;
failures are logged and go nowhere else.
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Spawns detached tasks, at most ``concurrency`` running at once."""

    def __init__(self, concurrency: int = 16):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set["asyncio.Task[None]"] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _get_semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self._concurrency)
            self._loop = loop
        return self._semaphore

    def spawn(self, coro: Coroutine[Any, Any, Any], *, label: str) -> "asyncio.Task[None]":
        """
        Schedule ``coro`` without awaiting it.

        Must be called from the event loop thread.
        """
        task = asyncio.create_task(self._guarded(coro, label), name=f"background:{label}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, coro: Coroutine[Any, Any, Any], label: str) -> None:
        try:
            async with self._get_semaphore():
                await coro
        except asyncio.CancelledError:
            logger.warning(f"[BACKGROUND] Task {label} cancelled")
            raise
        except Exception:
            logger.exception(f"[BACKGROUND] Task {label} failed")
        finally:
            # No-op once awaited; silences "never awaited" if cancelled first
            coro.close()

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Wait for pending tasks, including ones spawned while draining.

        Tasks still running after ``timeout`` seconds are cancelled.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else max(deadline - loop.time(), 0)
            done, pending = await asyncio.wait(set(self._tasks), timeout=remaining)
            if pending and deadline is not None and loop.time() >= deadline:
                logger.warning(f"[BACKGROUND] Cancelling {len(pending)} task(s) still running")
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                return
