"""Coordinated frame delivery to heterogeneous lighting devices"""

from .common.exceptions import (
    LightSyncError,
    ValidationError,
    ConfigurationError,
    DeviceError,
    UpdateCancelled,
)
from .core import (
    CancellationToken,
    DeviceColorComposition,
    DeviceHandle,
    DeviceManager,
    DeviceManagerConfig,
    InitializationSupervisor,
    RetryState,
    UpdateCoalescer,
    VariableRegistry,
)
from .devices import BlockingDevice, Device, MockDevice, create_devices

__version__ = "0.1.0"

__all__ = [
    "LightSyncError",
    "ValidationError",
    "ConfigurationError",
    "DeviceError",
    "UpdateCancelled",
    "CancellationToken",
    "DeviceColorComposition",
    "DeviceHandle",
    "DeviceManager",
    "DeviceManagerConfig",
    "InitializationSupervisor",
    "RetryState",
    "UpdateCoalescer",
    "VariableRegistry",
    "BlockingDevice",
    "Device",
    "MockDevice",
    "create_devices",
]
