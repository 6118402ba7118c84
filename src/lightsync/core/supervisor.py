"""Startup initialization and bounded background retries."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Sequence

from .config import RetryConfig, SystemDefaults

if TYPE_CHECKING:
    from ..devices.base import Device

logger = logging.getLogger(__name__)


@dataclass
class RetryState:
    """Retry budget shared by every retry loop the supervisor runs"""

    attempts: int = SystemDefaults.RETRY_ATTEMPTS
    interval_s: float = SystemDefaults.RETRY_INTERVAL_S
    remaining: int = field(init=False)
    active: bool = False
    rounds: int = 0

    def __post_init__(self):
        self.remaining = self.attempts

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryState":
        return cls(attempts=config.attempts, interval_s=config.interval_s)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "interval_s": self.interval_s,
            "remaining": self.remaining,
            "active": self.active,
            "rounds": self.rounds,
        }


class InitializationSupervisor:
    """Brings devices online and retries the stragglers in the background.

    ``initialize`` makes one sequential pass over the devices in registration
    order. If any device failed, a single retry task re-attempts the
    uninitialized, non-disabled devices every ``interval_s`` seconds until the
    budget in ``RetryState`` runs out or a round finds nothing to attempt.
    Initialization failures are logged and never raised.
    """

    def __init__(
        self,
        devices: Callable[[], Sequence["Device"]],
        retry_state: RetryState,
        is_disabled: Callable[["Device"], bool],
        on_devices_changed: Callable[[], None],
        log: Optional[logging.Logger] = None,
    ):
        self._devices = devices
        self.retry_state = retry_state
        self._is_disabled = is_disabled
        self._on_devices_changed = on_devices_changed
        self._log = log or logger

        self.any_initialized = False
        self.initialize_completed = False

        self._pass_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._retry_task: Optional[asyncio.Task] = None

    @property
    def retry_active(self) -> bool:
        return self.retry_state.active

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _eligible(self, device: "Device") -> bool:
        return not device.is_initialized() and not self._is_disabled(device)

    async def _attempt(self, device: "Device") -> bool:
        try:
            success = bool(await device.initialize())
        except Exception as e:
            self._log.error(f"Device, {device.name}, raised during initialization: {e}")
            success = False

        self._log.info(
            f"Device, {device.name}, was{'' if device.is_initialized() else ' not'} initialized"
        )
        return success

    async def initialize(self) -> int:
        """Run one initialization pass. Returns the number of devices that failed"""
        failed = 0
        async with self._pass_lock:
            for device in self._devices():
                if not self._eligible(device):
                    continue
                if await self._attempt(device):
                    self.any_initialized = True
                else:
                    failed += 1

        self._on_devices_changed()

        if (
            failed > 0
            and self.retry_state.remaining > 0
            and not self.retry_state.active
            and not self.stopped
        ):
            self._start_retry_loop()

        self.initialize_completed = True
        return failed

    async def initialize_once(self) -> bool:
        """Initialize only if nothing is online yet and a full pass already ran"""
        if not self.any_initialized and self.initialize_completed:
            await self.initialize()
            return True
        return False

    def _start_retry_loop(self) -> None:
        self.retry_state.active = True
        self._retry_task = asyncio.get_running_loop().create_task(
            self._retry_loop(), name="lightsync-init-retry"
        )
        self._log.info(
            f"Started initialization retry loop: {self.retry_state.remaining} attempts "
            f"every {self.retry_state.interval_s}s"
        )

    async def _retry_loop(self) -> None:
        state = self.retry_state
        try:
            while state.remaining > 0 and not self.stopped:
                self._log.info("Retrying device initialization")
                attempted = 0
                newly_initialized = False
                async with self._pass_lock:
                    for device in self._devices():
                        if not self._eligible(device):
                            continue
                        attempted += 1
                        if await self._attempt(device):
                            newly_initialized = True

                state.remaining -= 1
                state.rounds += 1

                # Nothing left to try
                if attempted == 0:
                    break

                if newly_initialized:
                    self.any_initialized = True
                    self._on_devices_changed()

                if state.remaining <= 0:
                    break

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=state.interval_s)
                except asyncio.TimeoutError:
                    continue
        finally:
            state.active = False
            self._log.info(
                f"Initialization retry loop finished after {state.rounds} rounds, "
                f"{state.remaining} attempts left"
            )

    async def wait_retry_finished(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current retry loop, if any. Returns False on timeout"""
        task = self._retry_task
        if task is None or task.done():
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return bool(done)

    async def stop(self, grace_s: float = SystemDefaults.SHUTDOWN_GRACE_S) -> bool:
        """Signal the retry loop to stop and wait up to ``grace_s`` for it"""
        self._stop_event.set()
        if await self.wait_retry_finished(timeout=grace_s):
            return True
        self._log.warning(
            f"Initialization retry loop did not stop within {grace_s}s, abandoning it"
        )
        return False
