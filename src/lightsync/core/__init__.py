"""Core device coordination components"""

from ..common.exceptions import ValidationError, ConfigurationError, DeviceError
from .config import (
    SystemDefaults,
    RetryConfig,
    ApiConfig,
    DeviceManagerConfig,
)
from .cancellation import CancellationToken
from .composition import DeviceColorComposition
from .coalescer import UpdateCoalescer, CoalescerMetrics
from .supervisor import InitializationSupervisor, RetryState
from .variables import VariableRegistry

# Import manager last, it depends on everything above
from .manager import DeviceManager, DeviceHandle

__all__ = [
    "ValidationError",
    "ConfigurationError",
    "DeviceError",
    "SystemDefaults",
    "RetryConfig",
    "ApiConfig",
    "DeviceManagerConfig",
    "CancellationToken",
    "DeviceColorComposition",
    "UpdateCoalescer",
    "CoalescerMetrics",
    "InitializationSupervisor",
    "RetryState",
    "VariableRegistry",
    "DeviceManager",
    "DeviceHandle",
]
