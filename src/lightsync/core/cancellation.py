"""Cooperative cancellation for in-flight device updates."""

import asyncio
import threading

from ..common.exceptions import UpdateCancelled


class CancellationToken:
    """Advisory cancellation flag handed to a device update call.

    Setting it never interrupts the driver. Drivers poll ``cancelled`` (or call
    ``raise_if_cancelled``) between chunks of work and stop early when a newer
    frame has superseded the one they are writing. The flag is backed by a
    ``threading.Event`` so drivers running blocking SDK calls in an executor
    thread can read it too.
    """

    __slots__ = ("_event",)

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UpdateCancelled("Update superseded by a newer frame")

    async def wait(self, poll_interval_s: float = 0.005) -> None:
        """Suspend until cancellation is requested"""
        while not self._event.is_set():
            await asyncio.sleep(poll_interval_s)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
