"""
Cooperative cancellation for background loops.

A loop owns a token and checks it before each unit of work; whoever wants
the loop gone calls cancel(). Work already in flight is allowed to finish.
"""

import asyncio


class CancellationToken:
    """One-way cancel flag that can also interrupt an interval sleep."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def wait(self, timeout: float) -> bool:
        """
        Sleep for up to ``timeout`` seconds, waking early on cancel.

        Returns:
            True if the token was cancelled, False if the timeout elapsed
        """
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self.cancelled
