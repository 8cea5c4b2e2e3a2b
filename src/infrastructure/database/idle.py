"""Deferred close of an unused database connection."""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger


class IdleTimer:
    """Runs ``on_idle`` once ``timeout`` seconds pass without being re-armed.

    Each call to ``arm`` cancels the pending countdown and starts a new one.
    Once the countdown has elapsed the callback is detached from the timer, so
    a later ``arm`` or ``cancel`` cannot interrupt a close that is already
    running.
    """

    def __init__(
        self, timeout: float, on_idle: Callable[[], Awaitable[None]]
    ) -> None:
        self.timeout = timeout
        self._on_idle = on_idle
        self._countdown: asyncio.Task[None] | None = None
        self._firing: asyncio.Task[None] | None = None

    @property
    def armed(self) -> bool:
        """Whether a countdown is currently pending."""
        return self._countdown is not None and not self._countdown.done()

    def arm(self) -> None:
        """Start or restart the countdown."""
        self.cancel()
        self._countdown = asyncio.create_task(self._run(), name="db-idle-timer")

    def cancel(self) -> None:
        """Stop the pending countdown, if any."""
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    async def _run(self) -> None:
        await asyncio.sleep(self.timeout)
        # Detach from arm()/cancel() before running the callback
        self._firing, self._countdown = self._countdown, None
        logger.debug("Idle timeout of {}s elapsed", self.timeout)
        try:
            await self._on_idle()
        finally:
            self._firing = None
