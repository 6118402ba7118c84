"""Common exceptions for the lightsync system."""


class LightSyncError(Exception):
    """Base exception for all lightsync errors."""

    pass


class ValidationError(LightSyncError):
    """Input validation error."""

    pass


class ConfigurationError(LightSyncError):
    """Configuration error."""

    pass


class DeviceError(LightSyncError):
    """Device driver error."""

    pass


class UpdateCancelled(DeviceError):
    """Raised by a driver that stops an update because a newer frame arrived."""

    pass
