from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Optional, Union
import logging

import yaml

from ..common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _as_list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"{key} must be a list, got {type(value).__name__}")
    return list(value)


class ConfigValidationMixin:
    """Mixin to add validation capabilities to config classes"""

    validators: ClassVar[Dict[str, Callable[[Any], bool]]] = {}

    def validate(self) -> None:
        """Validate configuration values"""
        for field_name, validator in self.validators.items():
            value = getattr(self, field_name)
            if not validator(value):
                raise ConfigurationError(f"Invalid {field_name}: {value}")


@dataclass
class SystemDefaults:
    """Constants for device coordination"""

    # Startup retry policy
    RETRY_ATTEMPTS: ClassVar[int] = 15
    RETRY_INTERVAL_S: ClassVar[float] = 5.0
    MAX_RETRY_ATTEMPTS: ClassVar[int] = 1000
    MAX_RETRY_INTERVAL_S: ClassVar[float] = 3600.0

    # Teardown
    SHUTDOWN_GRACE_S: ClassVar[float] = 2.0

    # Control API
    DEFAULT_API_HOST: ClassVar[str] = "127.0.0.1"
    DEFAULT_API_PORT: ClassVar[int] = 8000

    # Frames
    DEFAULT_LED_COUNT: ClassVar[int] = 60
    MAX_LED_COUNT: ClassVar[int] = 10_000

    @classmethod
    def get_all_defaults(cls) -> Dict[str, Any]:
        """Get all default values as a dictionary"""
        return {
            name: value
            for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, (int, float, str, bool))
        }


@dataclass
class RetryConfig(ConfigValidationMixin):
    """Background initialization retry settings"""

    attempts: int = SystemDefaults.RETRY_ATTEMPTS
    interval_s: float = SystemDefaults.RETRY_INTERVAL_S

    validators: ClassVar[Dict[str, Callable[[Any], bool]]] = {
        "attempts": lambda v: isinstance(v, int)
        and 0 <= v <= SystemDefaults.MAX_RETRY_ATTEMPTS,
        "interval_s": lambda v: isinstance(v, (int, float))
        and 0 <= v <= SystemDefaults.MAX_RETRY_INTERVAL_S,
    }


@dataclass
class ApiConfig(ConfigValidationMixin):
    """Control API settings"""

    host: str = SystemDefaults.DEFAULT_API_HOST
    port: int = SystemDefaults.DEFAULT_API_PORT

    validators: ClassVar[Dict[str, Callable[[Any], bool]]] = {
        "host": lambda v: isinstance(v, str) and bool(v),
        "port": lambda v: isinstance(v, int) and 1 <= v <= 65535,
    }


@dataclass
class DeviceManagerConfig:
    """Main configuration for the device manager"""

    retry: RetryConfig = field(default_factory=RetryConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    shutdown_grace_s: float = SystemDefaults.SHUTDOWN_GRACE_S
    disabled_devices: List[str] = field(default_factory=list)
    devices: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        """Validate entire configuration"""
        try:
            self.validate()
        except ConfigurationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def validate(self) -> None:
        self.retry.validate()
        self.api.validate()
        if not isinstance(self.shutdown_grace_s, (int, float)) or self.shutdown_grace_s < 0:
            raise ConfigurationError(
                f"Invalid shutdown_grace_s: {self.shutdown_grace_s}"
            )
        for name in ("disabled_devices", "devices"):
            if not isinstance(getattr(self, name), list):
                raise ConfigurationError(f"{name} must be a list")
        for device_type in self.disabled_devices:
            if not isinstance(device_type, str) or not device_type:
                raise ConfigurationError(f"Invalid disabled device type: {device_type!r}")
        for descriptor in self.devices:
            if not isinstance(descriptor, dict) or "type" not in descriptor:
                raise ConfigurationError(
                    f"Device descriptor must be a mapping with a 'type': {descriptor!r}"
                )

    @classmethod
    def create_default(cls) -> "DeviceManagerConfig":
        """Create default configuration"""
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DeviceManagerConfig":
        """Build configuration from a plain mapping"""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        unknown = set(data) - {
            "retry",
            "api",
            "shutdown_grace_s",
            "disabled_devices",
            "devices",
        }
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        try:
            return cls(
                retry=RetryConfig(**(data.get("retry") or {})),
                api=ApiConfig(**(data.get("api") or {})),
                shutdown_grace_s=data.get(
                    "shutdown_grace_s", SystemDefaults.SHUTDOWN_GRACE_S
                ),
                disabled_devices=_as_list(data, "disabled_devices"),
                devices=_as_list(data, "devices"),
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "DeviceManagerConfig":
        """Load configuration from a YAML file"""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        logger.info(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "retry": {
                "attempts": self.retry.attempts,
                "interval_s": self.retry.interval_s,
            },
            "api": {"host": self.api.host, "port": self.api.port},
            "shutdown_grace_s": self.shutdown_grace_s,
            "disabled_devices": list(self.disabled_devices),
            "devices": [dict(d) for d in self.devices],
        }

    # Disabled-device policy can change while devices are running; the manager
    # re-reads it through the provider on every dispatch.
    def disable_device(self, device_type: str) -> None:
        if device_type not in self.disabled_devices:
            self.disabled_devices.append(device_type)
            logger.info(f"Device type {device_type} disabled")

    def enable_device(self, device_type: str) -> None:
        if device_type in self.disabled_devices:
            self.disabled_devices.remove(device_type)
            logger.info(f"Device type {device_type} enabled")

    def disabled_devices_provider(self) -> Callable[[], FrozenSet[str]]:
        """Return a callable that reads the current disabled set"""
        return lambda: frozenset(self.disabled_devices)
