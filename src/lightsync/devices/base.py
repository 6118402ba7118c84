from abc import ABC, abstractmethod
from typing import Any, Dict
import asyncio
import functools
import logging

from ..core.cancellation import CancellationToken
from ..core.composition import DeviceColorComposition

logger = logging.getLogger(__name__)


class Device(ABC):
    """Abstract base class for output devices

    The coordination core only talks to hardware through these operations and
    treats every device kind the same way.
    """

    @property
    def name(self) -> str:
        """Human-readable device name"""
        return type(self).__name__

    @property
    def device_type(self) -> str:
        """Type identity used by the disabled-device policy"""
        return type(self).__name__

    @abstractmethod
    async def initialize(self) -> bool:
        """Bring the device online. Returns current status if already initialized"""
        pass

    @abstractmethod
    def is_initialized(self) -> bool:
        """Check whether the device is online"""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Take the device offline"""
        pass

    @abstractmethod
    async def reset(self) -> None:
        """Clear hardware state without dropping the connection"""
        pass

    @abstractmethod
    async def update(
        self,
        composition: DeviceColorComposition,
        cancellation: CancellationToken,
        forced: bool = False,
    ) -> bool:
        """Write one frame. Should poll ``cancellation`` during long writes"""
        pass

    def details(self) -> str:
        status = "Initialized" if self.is_initialized() else "Not initialized"
        return f"{self.name}: {status}"

    def registered_variables(self) -> Dict[str, Any]:
        """User-configurable variables with their default values"""
        return {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


class BlockingDevice(Device):
    """Base class for drivers whose SDK calls block.

    Subclasses implement the ``*_blocking`` methods; each one runs in the
    event loop's default executor so the loop keeps serving other devices
    while the SDK call is in progress.
    """

    def __init__(self):
        self._initialized = False

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    @abstractmethod
    def initialize_blocking(self) -> bool:
        pass

    @abstractmethod
    def shutdown_blocking(self) -> None:
        pass

    def reset_blocking(self) -> None:
        pass

    @abstractmethod
    def update_blocking(
        self,
        composition: DeviceColorComposition,
        cancellation: CancellationToken,
        forced: bool,
    ) -> bool:
        pass

    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        if self._initialized:
            return True
        self._initialized = bool(await self._run_blocking(self.initialize_blocking))
        return self._initialized

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        try:
            await self._run_blocking(self.shutdown_blocking)
        finally:
            self._initialized = False

    async def reset(self) -> None:
        if self._initialized:
            await self._run_blocking(self.reset_blocking)

    async def update(
        self,
        composition: DeviceColorComposition,
        cancellation: CancellationToken,
        forced: bool = False,
    ) -> bool:
        if not self._initialized:
            logger.debug(f"{self.name} is not initialized, ignoring update")
            return False
        return bool(
            await self._run_blocking(
                self.update_blocking, composition, cancellation, forced
            )
        )
