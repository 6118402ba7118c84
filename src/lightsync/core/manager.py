"""Device registry: composition root for frame dispatch and device lifecycle."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Collection,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
)

from ..common.exceptions import LightSyncError
from .coalescer import UpdateCoalescer
from .composition import DeviceColorComposition
from .config import DeviceManagerConfig
from .supervisor import InitializationSupervisor, RetryState
from .variables import VariableRegistry

if TYPE_CHECKING:
    from ..devices.base import Device

logger = logging.getLogger(__name__)

DisabledDevicesProvider = Callable[[], Collection[str]]
DevicesChangedCallback = Callable[[], Any]


@dataclass
class DeviceHandle:
    """A device paired with the coalescer that feeds it"""

    device: "Device"
    coalescer: UpdateCoalescer
    shutdown_in_progress: bool = field(default=False, repr=False)

    @property
    def name(self) -> str:
        return self.device.name


class DeviceManager:
    """Owns every device handle and is the single entry point for callers.

    Frames pushed through ``update_devices`` fan out to each initialized,
    enabled device's coalescer. The disabled-device set is re-read on every
    dispatch and initialization attempt; a device found initialized while its
    type is disabled gets shut down instead of updated. No control operation
    raises device faults: callers observe state through the query methods and
    the "devices changed" notification.
    """

    def __init__(
        self,
        devices: Iterable["Device"] = (),
        config: Optional[DeviceManagerConfig] = None,
        disabled_devices: Optional[DisabledDevicesProvider] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.config = config or DeviceManagerConfig.create_default()
        self._log = log or logger
        self._disabled_devices = (
            disabled_devices or self.config.disabled_devices_provider()
        )

        self._handles: List[DeviceHandle] = []
        self._observers: List[DevicesChangedCallback] = []
        self._background_tasks: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

        self.retry_state = RetryState.from_config(self.config.retry)
        self.supervisor = InitializationSupervisor(
            devices=lambda: [handle.device for handle in self._handles],
            retry_state=self.retry_state,
            is_disabled=self.is_disabled,
            on_devices_changed=self._notify_observers,
            log=self._log,
        )

        for device in devices:
            self.add_device(device)

    # Registration

    def add_device(self, device: "Device") -> DeviceHandle:
        """Register a device. Handles are never removed"""
        handle = DeviceHandle(device=device, coalescer=UpdateCoalescer(device, self._log))
        self._handles.append(handle)
        self._log.debug(f"Registered device {device.name} ({device.device_type})")
        return handle

    @property
    def handles(self) -> List[DeviceHandle]:
        return list(self._handles)

    @property
    def devices(self) -> List["Device"]:
        return [handle.device for handle in self._handles]

    def get_handle(self, name: str) -> Optional[DeviceHandle]:
        return next((h for h in self._handles if h.name == name), None)

    def is_disabled(self, device: "Device") -> bool:
        return device.device_type in self._disabled_devices()

    def register_variables(
        self, registry: Optional[VariableRegistry] = None
    ) -> VariableRegistry:
        """Combine every device's variables into ``registry``"""
        registry = registry if registry is not None else VariableRegistry()
        for handle in self._handles:
            registry.combine(handle.device.registered_variables())
        return registry

    # Observers

    def add_observer(self, callback: DevicesChangedCallback) -> None:
        """Call ``callback()`` whenever devices may have come online"""
        self._observers.append(callback)

    def remove_observer(self, callback: DevicesChangedCallback) -> None:
        self._observers = [obs for obs in self._observers if obs != callback]

    def _notify_observers(self) -> None:
        for observer in list(self._observers):
            try:
                result = observer()
                if asyncio.iscoroutine(result):
                    self._spawn(result, "lightsync-observer")
            except Exception as e:
                self._log.error(f"Devices-changed observer failed: {e}")

    # Lifecycle

    async def initialize(self) -> int:
        """Initialize every eligible device. Returns how many failed"""
        self._loop = asyncio.get_running_loop()
        if self._closed:
            self._log.warning("Device manager is closed, ignoring initialize")
            return 0
        return await self.supervisor.initialize()

    async def initialize_once(self) -> bool:
        """Initialize if no device is online and ``initialize`` has already run once"""
        if self._closed:
            return False
        return await self.supervisor.initialize_once()

    def any_initialized(self) -> bool:
        return self.supervisor.any_initialized

    def remaining_retry_attempts(self) -> int:
        return self.retry_state.remaining

    def get_initialized_devices(self) -> List["Device"]:
        """Snapshot of devices currently reporting initialized"""
        return [h.device for h in self._handles if h.device.is_initialized()]

    async def _shutdown_handle(self, handle: DeviceHandle) -> None:
        handle.shutdown_in_progress = True
        try:
            handle.coalescer.discard_pending()
            handle.coalescer.cancel_in_flight()
            if not await handle.coalescer.drain(timeout=self.config.shutdown_grace_s):
                self._log.warning(
                    f"Device, {handle.name}, still updating after "
                    f"{self.config.shutdown_grace_s}s, shutting down anyway"
                )
            if not handle.device.is_initialized():
                return
            await handle.device.shutdown()
            self._log.info(f"Device, {handle.name}, was shutdown")
        except Exception as e:
            self._log.error(f"Device, {handle.name}, failed to shut down: {e}")
        finally:
            handle.shutdown_in_progress = False

    async def shutdown(self) -> None:
        """Shut down every initialized device"""
        for handle in self._handles:
            if handle.device.is_initialized() and not handle.shutdown_in_progress:
                await self._shutdown_handle(handle)
        self.supervisor.any_initialized = False

    async def reset_devices(self) -> None:
        """Reset hardware state of every initialized device"""
        for handle in self._handles:
            if not handle.device.is_initialized():
                continue
            try:
                await handle.device.reset()
                self._log.debug(f"Device, {handle.name}, was reset")
            except Exception as e:
                self._log.error(f"Device, {handle.name}, failed to reset: {e}")

    # Frame dispatch

    def update_devices(
        self, composition: DeviceColorComposition, forced: bool = False
    ) -> int:
        """Push a frame to every initialized, enabled device.

        Must be called from the event loop thread; never waits on device I/O.
        Returns the number of devices the frame was submitted to.
        """
        if self._closed:
            return 0
        self._loop = asyncio.get_running_loop()

        dispatched = 0
        for handle in self._handles:
            device = handle.device
            if not device.is_initialized() or handle.shutdown_in_progress:
                continue
            if self.is_disabled(device):
                self._log.info(
                    f"Device, {handle.name}, is disabled but initialized, shutting it down"
                )
                handle.shutdown_in_progress = True
                self._spawn(self._shutdown_handle(handle), f"lightsync-disable-{handle.name}")
                continue
            handle.coalescer.submit(composition, forced)
            dispatched += 1
        return dispatched

    def update_devices_threadsafe(
        self, composition: DeviceColorComposition, forced: bool = False
    ) -> None:
        """Schedule ``update_devices`` on the manager's loop from another thread"""
        if self._loop is None or self._loop.is_closed():
            raise LightSyncError("Device manager is not attached to a running event loop")
        self._loop.call_soon_threadsafe(self.update_devices, composition, forced)

    # Diagnostics

    def status_report(self) -> str:
        lines = [handle.device.details() for handle in self._handles]
        if self.retry_state.remaining > 0:
            lines.append(f"Retries: {self.retry_state.remaining}")
        return "".join(f"{line}\r\n" for line in lines)

    def device_status(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": handle.name,
                "type": handle.device.device_type,
                "initialized": handle.device.is_initialized(),
                "disabled": self.is_disabled(handle.device),
                "busy": handle.coalescer.busy,
                "details": handle.device.details(),
                "metrics": handle.coalescer.metrics.to_dict(),
            }
            for handle in self._handles
        ]

    def get_state(self) -> Dict[str, Any]:
        return {
            "any_initialized": self.any_initialized(),
            "remaining_retry_attempts": self.remaining_retry_attempts(),
            "retry": self.retry_state.to_dict(),
            "devices": self.device_status(),
        }

    # Teardown

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Stop the retry loop and in-flight updates within the shutdown grace"""
        if self._closed:
            return
        self._closed = True
        grace = self.config.shutdown_grace_s

        await self.supervisor.stop(grace)

        drains = []
        for handle in self._handles:
            handle.coalescer.discard_pending()
            handle.coalescer.cancel_in_flight()
            if handle.coalescer.busy:
                drains.append(asyncio.ensure_future(handle.coalescer.drain()))
        pending = drains + list(self._background_tasks)
        if pending:
            _, not_done = await asyncio.wait(pending, timeout=grace)
            if not_done:
                self._log.warning(
                    f"{len(not_done)} device tasks still running after {grace}s, abandoning them"
                )
            # Only the waiters are cancelled; device calls are left to finish
            for drain in drains:
                if not drain.done():
                    drain.cancel()
        self._log.info("Device manager closed")

    async def teardown(self) -> None:
        """Stop retries, shut every device down, then close"""
        # A retry round running during shutdown could bring a device back up
        await self.supervisor.stop(self.config.shutdown_grace_s)
        await self.shutdown()
        await self.close()

    async def __aenter__(self) -> "DeviceManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
