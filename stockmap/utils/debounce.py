"""
Trailing-edge debounce for asyncio callbacks.

Used for container resize: a window drag emits a storm of resize events;
only the last one, once the storm has been quiet for `delay_ms`, triggers
a re-layout.

Usage:
    debouncer = Debouncer(lambda w, h: renderer.render(items, w, h), delay_ms=250)
    debouncer.trigger(1024, 768)   # called from every resize event
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional, Tuple

from .logging_setup import get_logger

logger = get_logger(__name__)


class Debouncer:
    """
    Coalesce bursts of calls into one trailing call.

    Each trigger() cancels the pending wait and starts a new one with the
    latest arguments. Only the wait is ever cancelled: once the callback
    has fired, an async callback runs in its own task and a later trigger
    does not interrupt it (the renderer supersedes stale paints itself).
    """

    def __init__(self, callback: Callable[..., Any], delay_ms: float = 250.0):
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        self._callback = callback
        self._delay_ms = delay_ms
        self._wait_task: Optional[asyncio.Task] = None
        self._fire_task: Optional[asyncio.Future] = None
        self._args: Tuple[Any, ...] = ()
        self._kwargs: dict = {}
        self.trigger_count = 0
        self.fire_count = 0

    @property
    def delay_ms(self) -> float:
        return self._delay_ms

    @property
    def pending(self) -> bool:
        return self._wait_task is not None and not self._wait_task.done()

    def trigger(self, *args: Any, **kwargs: Any) -> None:
        """Record the latest arguments and restart the quiet-period timer."""
        self.trigger_count += 1
        self._args = args
        self._kwargs = kwargs
        if self.pending:
            self._wait_task.cancel()
        self._wait_task = asyncio.get_running_loop().create_task(self._wait_and_fire())

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self.pending:
            self._wait_task.cancel()
        self._wait_task = None

    async def flush(self) -> None:
        """Wait until the pending call (if any) has fired and finished."""
        while self.pending:
            task = self._wait_task
            try:
                await task
            except asyncio.CancelledError:
                if self._wait_task is task:
                    # Cancelled via cancel(), nothing left to wait for
                    break
        if self._fire_task is not None and not self._fire_task.done():
            await self._fire_task

    async def _wait_and_fire(self) -> None:
        await asyncio.sleep(self._delay_ms / 1000)
        self.fire_count += 1
        logger.debug(f"Debounce fired after {self.trigger_count} trigger(s) (fire #{self.fire_count})")
        result = self._callback(*self._args, **self._kwargs)
        if inspect.isawaitable(result):
            self._fire_task = asyncio.ensure_future(result)
