import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from resilient_fetch.errors.web import WebClientCancelledError

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation for a whole fetch call.

    A token is checked before every attempt, raced against every in-flight request and
    interrupts backoff waits. Cancelling is idempotent and cannot be undone.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            msg = "Fetch was cancelled"
            raise WebClientCancelledError(msg)

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless the token is cancelled first.

        Raises:
            WebClientCancelledError: If the token is cancelled before or during the wait.
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            return

        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return

        self.raise_if_cancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable``, abandoning it as soon as the token is cancelled.

        Raises:
            WebClientCancelledError: If the token is cancelled before ``awaitable`` completes.
        """
        self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (work, watcher):
                if not task.done():
                    task.cancel()

        if work.done() and not work.cancelled():
            return work.result()

        self.raise_if_cancelled()
        return await work
