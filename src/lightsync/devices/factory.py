from typing import Any, Dict, Iterable, List, Type
import logging

from ..common.exceptions import ConfigurationError
from .base import Device
from .mock import MockDevice
from .udp import UdpPixelDevice

logger = logging.getLogger(__name__)

_device_types: Dict[str, Type[Device]] = {
    "mock": MockDevice,
    "udp": UdpPixelDevice,
}


def register_device_type(type_name: str, device_cls: Type[Device]) -> None:
    """Make ``device_cls`` available to descriptors with ``type: type_name``"""
    if not (isinstance(device_cls, type) and issubclass(device_cls, Device)):
        raise ConfigurationError(f"{device_cls!r} is not a Device subclass")
    _device_types[type_name] = device_cls
    logger.debug(f"Registered device type {type_name}: {device_cls.__name__}")


def available_device_types() -> List[str]:
    return sorted(_device_types)


def create_device(descriptor: Dict[str, Any]) -> Device:
    """Factory function to create a device from a config descriptor"""
    params = dict(descriptor)
    device_type = params.pop("type", None)
    if device_type is None:
        raise ConfigurationError(f"Device descriptor has no type: {descriptor!r}")

    device_cls = _device_types.get(device_type)
    if device_cls is None:
        raise ConfigurationError(f"Unknown device type: {device_type}")

    try:
        return device_cls(**params)
    except TypeError as e:
        raise ConfigurationError(f"Invalid parameters for {device_type} device: {e}") from e


def create_devices(descriptors: Iterable[Dict[str, Any]]) -> List[Device]:
    """Build every descriptor, logging and skipping the ones that fail"""
    devices = []
    for descriptor in descriptors:
        try:
            devices.append(create_device(descriptor))
        except Exception as e:
            logger.error(f"An error occurred while creating device {descriptor!r}: {e}")
    return devices
