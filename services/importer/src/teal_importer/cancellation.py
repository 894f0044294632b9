"""Cooperative cancellation for the publish and sweep loops."""

import asyncio
import logging

logger = logging.getLogger(__name__)


class CancellationToken:
    """Externally settable stop flag, polled by the loops at safe points.

    Setting the token never interrupts an in-flight request; loops check it
    before starting a batch and before waiting. ``sleep`` returns early when
    the token is set so long pauses end promptly.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.info("Cancellation requested, stopping after the current batch")
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Wait up to ``seconds``. Returns True if cancelled before or during the wait."""
        if self._event.is_set() or seconds <= 0:
            return self._event.is_set()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True
