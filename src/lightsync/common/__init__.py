"""Common components shared across modules."""

from .exceptions import (
    LightSyncError,
    ValidationError,
    ConfigurationError,
    DeviceError,
    UpdateCancelled,
)

__all__ = [
    "LightSyncError",
    "ValidationError",
    "ConfigurationError",
    "DeviceError",
    "UpdateCancelled",
]
