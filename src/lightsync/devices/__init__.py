"""Device capability and bundled drivers"""

from .base import Device, BlockingDevice
from .mock import MockDevice, DeviceState
from .udp import UdpPixelDevice
from .factory import (
    available_device_types,
    create_device,
    create_devices,
    register_device_type,
)

__all__ = [
    "Device",
    "BlockingDevice",
    "MockDevice",
    "DeviceState",
    "UdpPixelDevice",
    "available_device_types",
    "create_device",
    "create_devices",
    "register_device_type",
]
