"""Push-style live queries on top of a relational database.

A `LiveQuery` runs a fetch function whenever a local write signals a change,
and otherwise on a fixed poll interval so rows written by other processes
(the storefront) are picked up too. Subscribers receive the full result each
time it differs from the previous delivery. One asyncio task per subscription
delivers results strictly in order.
"""

import asyncio
import logging
from typing import Callable, Generic, Hashable, Optional, Sequence, TypeVar

from starlette.concurrency import run_in_threadpool

from wingx.domain.errors import FeedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChangeSignal:
    """Wakes every running live query after a local write."""

    def __init__(self):
        self._events: set[asyncio.Event] = set()

    def register(self) -> asyncio.Event:
        event = asyncio.Event()
        self._events.add(event)
        return event

    def unregister(self, event: asyncio.Event) -> None:
        self._events.discard(event)

    def notify(self) -> None:
        for event in list(self._events):
            event.set()


class Subscription:
    """Cancellation handle returned by every `subscribe` call."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._cancel()


class LiveQuery(Generic[T]):
    def __init__(
        self,
        fetch: Callable[[], Sequence[T]],
        signal: ChangeSignal,
        poll_interval: float,
        fingerprint: Callable[[T], Hashable] = lambda row: row,
        error_message: str = "No se pudo consultar la base de datos.",
    ):
        self.fetch = fetch
        self.signal = signal
        self.poll_interval = poll_interval
        self.fingerprint = fingerprint
        self.error_message = error_message

    def subscribe(
        self,
        on_snapshot: Callable[[list[T]], None],
        on_error: Optional[Callable[[FeedError], None]] = None,
    ) -> Subscription:
        """Start delivering results; must be called from the running event loop."""
        wake = self.signal.register()
        state = {"active": True}

        def fail(exc: Exception) -> None:
            logger.error(f"Live query failed: {exc!r}")
            if state["active"] and on_error is not None:
                on_error(FeedError(self.error_message))

        async def run():
            last = None
            while state["active"]:
                wake.clear()
                # Any failure ends the subscription; the subscriber decides on a retry
                try:
                    rows = list(await run_in_threadpool(self.fetch))
                    current = tuple(self.fingerprint(row) for row in rows)
                    if state["active"] and current != last:
                        last = current
                        on_snapshot(rows)
                except Exception as exc:
                    fail(exc)
                    return
                try:
                    await asyncio.wait_for(wake.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass

        task = asyncio.get_running_loop().create_task(run())

        def cancel():
            # Checked before every delivery, so nothing arrives after this
            state["active"] = False
            self.signal.unregister(wake)
            task.cancel()

        return Subscription(cancel)
