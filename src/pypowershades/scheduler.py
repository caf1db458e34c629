"""Self-rescheduling poll timer with adaptive interval.

The scheduler runs one tick at a time: the next tick is scheduled only
after the current one (including its error path) has completed. The
interval is recomputed for every schedule, so a caller that changes the
activity clock and calls restart() gets the new cadence immediately.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)


class PollScheduler:
    """Cancellable poll timer.

    Example:
        ```python
        scheduler = PollScheduler(client.poll, client.current_poll_interval)
        scheduler.start()

        # After a user action: drop the pending (idle) tick and reschedule
        scheduler.restart()

        await scheduler.stop()
        ```

    Attributes:
        name: Label used in log messages.
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[None]],
        interval: Callable[[], float],
        *,
        name: str = "poll",
    ) -> None:
        """Initialize the scheduler.

        Args:
            tick: Coroutine function run on every tick. Exceptions are logged and swallowed.
            interval: Returns the delay in seconds before the next tick.
            name: Label used in log messages.
        """
        self.name = name
        self._tick = tick
        self._interval = interval
        self._handle: asyncio.TimerHandle | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self._running = False
        self._next_interval: float | None = None

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is started."""
        return self._running

    @property
    def tick_in_progress(self) -> bool:
        """Check if a tick is currently executing."""
        return self._tick_task is not None and not self._tick_task.done()

    @property
    def has_pending_tick(self) -> bool:
        """Check if a tick is scheduled and waiting."""
        return self._handle is not None

    @property
    def next_interval(self) -> float | None:
        """Get the interval used for the most recent schedule."""
        return self._next_interval

    def start(self) -> None:
        """Start polling. Has no effect if already running."""
        if self._running:
            return
        self._running = True
        _LOGGER.info("Started %s scheduler", self.name)
        self._schedule()

    def restart(self) -> None:
        """Cancel the pending tick and reschedule using the current interval.

        An executing tick is never interrupted; it reschedules itself with a
        fresh interval once it completes.
        """
        if not self._running:
            return

        self._cancel_pending()

        if self.tick_in_progress:
            _LOGGER.debug("Tick in progress, %s scheduler will reschedule on completion", self.name)
            return

        self._schedule()

    async def stop(self) -> None:
        """Stop polling, cancelling the pending and any executing tick."""
        if not self._running:
            return

        self._running = False
        self._cancel_pending()

        if self._tick_task is not None:
            self._tick_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._tick_task
            self._tick_task = None

        _LOGGER.info("Stopped %s scheduler", self.name)

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        interval = max(float(self._interval()), 0.0)
        self._next_interval = interval
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(interval, self._fire)
        _LOGGER.debug("Next %s tick in %.1fs", self.name, interval)

    def _fire(self) -> None:
        self._handle = None
        self._tick_task = asyncio.create_task(self._run_tick())

    async def _run_tick(self) -> None:
        try:
            await self._tick()
        except asyncio.CancelledError:
            raise
        except Exception:
            _LOGGER.exception("%s tick failed", self.name.capitalize())

        if self._running and self._handle is None:
            self._schedule()
