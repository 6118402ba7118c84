import asyncio
import sys
import time
from pathlib import Path

import pytest
import yaml

# Make the src layout importable without an installed package
src_dir = Path(__file__).parent.parent.absolute() / "src"
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from lightsync.core.config import DeviceManagerConfig, RetryConfig
from lightsync.core.manager import DeviceManager
from lightsync.devices.mock import MockDevice


@pytest.fixture
def fast_config():
    """Configuration with short retry interval and teardown grace"""
    return DeviceManagerConfig(
        retry=RetryConfig(attempts=15, interval_s=0.02), shutdown_grace_s=0.5
    )


@pytest.fixture
def make_device():
    """Factory for mock devices with distinct type identities"""

    def _make(name="A", **kwargs):
        kwargs.setdefault("device_type", f"Mock{name}")
        kwargs.setdefault("num_pixels", 8)
        return MockDevice(name=name, **kwargs)

    return _make


@pytest.fixture
async def manager_factory(fast_config):
    """Build managers that are closed after the test"""
    created = []

    def _build(devices, config=None, **kwargs):
        manager = DeviceManager(devices, config or fast_config, **kwargs)
        created.append(manager)
        return manager

    yield _build

    for manager in created:
        await manager.close()


@pytest.fixture
def wait_until():
    """Poll an async condition until it holds or the timeout expires"""

    async def _wait(predicate, timeout=2.0, interval=0.005):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()

    return _wait


@pytest.fixture
def device_config():
    """Plain configuration mapping for testing"""
    return {
        "retry": {"attempts": 5, "interval_s": 0.5},
        "shutdown_grace_s": 1.0,
        "disabled_devices": ["MockB"],
        "devices": [
            {"type": "mock", "name": "A", "device_type": "MockA", "num_pixels": 4},
            {"type": "mock", "name": "B", "device_type": "MockB", "num_pixels": 4},
        ],
    }


@pytest.fixture
def config_file(tmp_path, device_config):
    """Create a temporary config file for testing"""
    config_path = tmp_path / "lightsync.yaml"
    with open(config_path, "w") as f:
        yaml.dump(device_config, f)
    return config_path
