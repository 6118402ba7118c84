import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..common.exceptions import DeviceError
from ..core.cancellation import CancellationToken
from ..core.composition import DeviceColorComposition
from .base import Device

logger = logging.getLogger(__name__)


@dataclass
class DeviceState:
    """Current state of a device"""

    pixels: np.ndarray
    error_count: int = 0
    max_errors: int = 10

    def record_error(self) -> bool:
        """Record an error and return True if max errors exceeded"""
        self.error_count += 1
        return self.error_count >= self.max_errors

    def clear_errors(self):
        """Reset error count"""
        self.error_count = 0


class MockDevice(Device):
    """In-memory device for development without hardware.

    ``fail_initializations`` makes the first N ``initialize`` calls fail (-1
    fails forever). ``update_delay_s`` simulates a slow write; the write is
    split into short sleeps so a cancellation request ends it early.
    """

    def __init__(
        self,
        name: str = "Mock Device",
        num_pixels: int = 60,
        device_type: Optional[str] = None,
        fail_initializations: int = 0,
        update_delay_s: float = 0.0,
        fail_updates: bool = False,
        variables: Optional[Dict[str, Any]] = None,
    ):
        self._name = name
        self._device_type = device_type or type(self).__name__
        self.num_pixels = num_pixels
        self.fail_initializations = fail_initializations
        self.update_delay_s = update_delay_s
        self.fail_updates = fail_updates
        self._variables = dict(variables or {})

        self._state = DeviceState(pixels=np.zeros((num_pixels, 3), dtype=np.uint8))
        self._initialized = False

        # Call log for inspection
        self.initialize_calls = 0
        self.shutdown_calls = 0
        self.reset_calls = 0
        self.update_calls: List[Tuple[DeviceColorComposition, bool]] = []
        self.cancelled_updates = 0
        self._active_updates = 0
        self.max_concurrent_updates = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def device_type(self) -> str:
        return self._device_type

    @property
    def pixels(self) -> np.ndarray:
        return self._state.pixels.copy()

    @property
    def last_composition(self) -> Optional[DeviceColorComposition]:
        return self.update_calls[-1][0] if self.update_calls else None

    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        if self._initialized:
            return True

        self.initialize_calls += 1
        await asyncio.sleep(0)
        if self.fail_initializations < 0 or self.fail_initializations >= self.initialize_calls:
            logger.debug(f"Mock device {self.name} failed to initialize")
            return False

        self._initialized = True
        logger.info(f"Initialized mock device {self.name} with {self.num_pixels} pixels")
        return True

    async def shutdown(self) -> None:
        self.shutdown_calls += 1
        self._initialized = False
        self._state.pixels.fill(0)
        logger.info(f"Mock device {self.name} shut down")

    async def reset(self) -> None:
        self.reset_calls += 1
        self._state.pixels.fill(0)
        self._state.clear_errors()

    async def update(
        self,
        composition: DeviceColorComposition,
        cancellation: CancellationToken,
        forced: bool = False,
    ) -> bool:
        self.update_calls.append((composition, forced))
        self._active_updates += 1
        self.max_concurrent_updates = max(
            self.max_concurrent_updates, self._active_updates
        )
        try:
            if not self._initialized:
                raise DeviceError(f"Mock device {self.name} is not initialized")

            deadline = time.monotonic() + self.update_delay_s
            while time.monotonic() < deadline:
                if cancellation.cancelled:
                    self.cancelled_updates += 1
                    return False
                await asyncio.sleep(min(0.005, max(0.0, deadline - time.monotonic())))
            # Always yield once so callers can observe the call in progress
            await asyncio.sleep(0)

            if self.fail_updates:
                if self._state.record_error():
                    logger.critical(f"Too many errors on mock device {self.name}")
                raise DeviceError(f"Mock device {self.name} failed to update")

            pixels = composition.pixels
            if pixels.shape != self._state.pixels.shape:
                # Stretch or truncate to the device's zone count
                pixels = np.resize(pixels, self._state.pixels.shape)
            self._state.pixels = pixels.copy()
            self._state.clear_errors()
            return True
        finally:
            self._active_updates -= 1

    def details(self) -> str:
        status = "Initialized" if self._initialized else "Not initialized"
        return f"{self.name} (mock, {self.num_pixels} zones): {status}"

    def registered_variables(self) -> Dict[str, Any]:
        return dict(self._variables)
