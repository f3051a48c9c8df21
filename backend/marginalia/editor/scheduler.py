"""Coalescing debounce scheduler."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class CoalescingScheduler:
    """
    At most one pending timer per logical stream.

    Scheduling on a stream that already has a pending timer cancels it first,
    so a burst of events yields exactly one run, `delay` after the last event.
    Timers run on the event loop that was running when they were scheduled.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._pending: dict[str, asyncio.TimerHandle] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_streams(self) -> set[str]:
        return set(self._pending)

    def is_pending(self, stream: str) -> bool:
        return stream in self._pending

    def schedule(self, stream: str, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        """Supersede any pending timer on `stream` with a new one."""
        if self._closed:
            raise RuntimeError("Scheduler is closed")
        self.cancel(stream)
        loop = self._loop or asyncio.get_running_loop()
        self._pending[stream] = loop.call_later(delay, self._run, stream, callback, args)

    def cancel(self, stream: str) -> bool:
        handle = self._pending.pop(stream, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        streams = list(self._pending)
        for stream in streams:
            self.cancel(stream)
        return len(streams)

    def close(self) -> None:
        """Cancel everything and refuse new timers."""
        cancelled = self.cancel_all()
        self._closed = True
        if cancelled:
            logger.debug("Scheduler closed with %d pending timer(s) cancelled", cancelled)

    def _run(self, stream: str, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self._pending.pop(stream, None)
        try:
            callback(*args)
        except Exception:
            logger.exception("Scheduled task on stream %r failed", stream)
