"""Cooperative cancellation for discovery runs."""

import asyncio
import time

from kdiscover.core.exceptions import CanceledError


class DiscoveryContext:
    """Cancellation token and optional deadline for one discovery run.

    Providers check the context at every network boundary (the list call and
    each describe call). ``cancel`` must be called from the event loop running
    the discovery.
    """

    def __init__(self, timeout: float | None = None):
        self._event = asyncio.Event()
        self._reason: str | None = None
        self.timeout = timeout
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "discovery canceled") -> None:
        if self._reason is None:
            self._reason = reason
        self._event.set()

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def canceled(self) -> bool:
        if self._event.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def error(self) -> CanceledError:
        if self._reason is not None:
            return CanceledError(self._reason)
        return CanceledError(f"discovery deadline of {self.timeout}s exceeded")

    def raise_if_canceled(self) -> None:
        """Raise ``CanceledError`` if the context was canceled or timed out."""
        if self.canceled:
            raise self.error()

    async def wait(self) -> None:
        """Return once the context is canceled or its deadline passes."""
        remaining = self.remaining()
        if remaining is None:
            await self._event.wait()
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=remaining)
        except asyncio.TimeoutError:
            return
