"""Per-device frame coalescing with a single sequential worker."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from ..common.exceptions import UpdateCancelled
from .cancellation import CancellationToken
from .composition import DeviceColorComposition

if TYPE_CHECKING:
    from ..devices.base import Device

logger = logging.getLogger(__name__)


@dataclass
class CoalescerMetrics:
    """Counters for one device's update stream"""

    submitted: int = 0
    applied: int = 0
    coalesced: int = 0  # frames overwritten before the worker took them
    discarded: int = 0  # pending frames dropped at shutdown or teardown
    cancelled: int = 0  # cancellation requests sent to an in-flight call
    faults: int = 0
    last_update_ms: float = 0.0
    last_error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submitted": self.submitted,
            "applied": self.applied,
            "coalesced": self.coalesced,
            "discarded": self.discarded,
            "cancelled": self.cancelled,
            "faults": self.faults,
            "last_update_ms": self.last_update_ms,
            "last_error": self.last_error,
        }


class UpdateCoalescer:
    """Feeds one device with the newest submitted frame.

    The pending slot holds at most one ``(composition, forced, generation)``
    entry; a submission always overwrites it. One worker task drains the slot,
    so the device never sees two concurrent ``update`` calls, and frames that
    arrive while a call is running collapse into the newest one. The slot and
    the worker handle are only touched from the event loop thread, so no lock
    is needed: ``submit`` never awaits.
    """

    def __init__(self, device: "Device", log: Optional[logging.Logger] = None):
        self.device = device
        self.metrics = CoalescerMetrics()
        self._log = log or logger

        self._pending: Optional[Tuple[DeviceColorComposition, bool, int]] = None
        self._generation = 0
        self._applied_generation = 0
        self._cancellation: Optional[CancellationToken] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        """True while the worker task exists and has not finished"""
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    @property
    def generation(self) -> int:
        """Generation of the most recent submission"""
        return self._generation

    @property
    def applied_generation(self) -> int:
        """Generation of the last frame handed to the device"""
        return self._applied_generation

    def submit(self, composition: DeviceColorComposition, forced: bool = False) -> None:
        """Queue ``composition`` as the next frame, replacing any unconsumed one.

        Must be called from the event loop thread. Returns immediately.
        """
        self._generation += 1
        if self._pending is not None:
            self.metrics.coalesced += 1
        self._pending = (composition, forced, self._generation)
        self.metrics.submitted += 1

        self.cancel_in_flight()

        if not self.busy:
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name=f"lightsync-update-{self.device.name}"
            )

    def discard_pending(self) -> bool:
        """Drop the unconsumed frame, if any"""
        if self._pending is None:
            return False
        self._pending = None
        self.metrics.discarded += 1
        return True

    def cancel_in_flight(self) -> bool:
        """Ask the running update call to stop early. Returns True if one was signalled"""
        token = self._cancellation
        if token is None or token.cancelled:
            return False
        token.cancel()
        self.metrics.cancelled += 1
        return True

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until the worker goes idle. Returns False on timeout"""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.busy:
            worker = self._worker
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            done, _ = await asyncio.wait({worker}, timeout=remaining)
            if not done:
                return False
        return True

    async def _run(self) -> None:
        while self._pending is not None:
            composition, forced, generation = self._pending
            self._pending = None

            token = CancellationToken()
            self._cancellation = token
            self._applied_generation = generation
            start_time = time.perf_counter()
            try:
                await self.device.update(composition, token, forced)
                self.metrics.applied += 1
            except UpdateCancelled:
                self._log.debug(
                    f"Update of {self.device.name} cancelled for frame {composition.sequence}"
                )
            except Exception as e:
                # The worker keeps running; the next pending frame still goes out
                self.metrics.faults += 1
                self.metrics.last_error = str(e)
                self._log.exception(f"Device, {self.device.name}, update failed: {e}")
            finally:
                self._cancellation = None
                self.metrics.last_update_ms = (time.perf_counter() - start_time) * 1000
