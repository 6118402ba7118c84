import pytest
import yaml

from lightsync.common.exceptions import ConfigurationError
from lightsync.core.config import (
    ApiConfig,
    DeviceManagerConfig,
    RetryConfig,
    SystemDefaults,
)
from lightsync.core.variables import VariableRegistry


class TestDeviceManagerConfig:
    """Test configuration loading and validation"""

    def test_defaults(self):
        config = DeviceManagerConfig.create_default()

        assert config.retry.attempts == SystemDefaults.RETRY_ATTEMPTS == 15
        assert config.retry.interval_s == SystemDefaults.RETRY_INTERVAL_S
        assert config.api.port == SystemDefaults.DEFAULT_API_PORT
        assert config.disabled_devices == []
        assert config.devices == []

    def test_from_dict(self, device_config):
        config = DeviceManagerConfig.from_dict(device_config)

        assert config.retry.attempts == 5
        assert config.retry.interval_s == 0.5
        assert config.shutdown_grace_s == 1.0
        assert config.disabled_devices == ["MockB"]
        assert len(config.devices) == 2

    def test_from_empty_dict(self):
        assert DeviceManagerConfig.from_dict(None) == DeviceManagerConfig()

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown configuration keys"):
            DeviceManagerConfig.from_dict({"retries": 3})

    def test_unknown_nested_key_rejected(self):
        with pytest.raises(ConfigurationError):
            DeviceManagerConfig.from_dict({"retry": {"count": 3}})

    @pytest.mark.parametrize(
        "data",
        [
            {"retry": {"attempts": -1}},
            {"retry": {"attempts": "many"}},
            {"retry": {"interval_s": -0.5}},
            {"api": {"port": 0}},
            {"shutdown_grace_s": -1},
            {"disabled_devices": [""]},
            {"devices": [{"name": "no type"}]},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ConfigurationError):
            DeviceManagerConfig.from_dict(data)

    @pytest.mark.parametrize(
        "data",
        [
            {"disabled_devices": "MockB"},
            {"disabled_devices": {"MockB": True}},
            {"devices": {"type": "mock"}},
        ],
    )
    def test_scalar_where_list_expected(self, data):
        with pytest.raises(ConfigurationError, match="must be a list"):
            DeviceManagerConfig.from_dict(data)

    def test_scalar_disabled_devices_in_yaml(self, tmp_path):
        path = tmp_path / "scalar.yaml"
        path.write_text("disabled_devices: MockB\n")

        with pytest.raises(ConfigurationError, match="disabled_devices"):
            DeviceManagerConfig.from_yaml(path)

    def test_direct_construction_rejects_string(self):
        with pytest.raises(ConfigurationError):
            DeviceManagerConfig(disabled_devices="MockB")

    def test_from_yaml(self, config_file):
        config = DeviceManagerConfig.from_yaml(config_file)

        assert config.retry.attempts == 5
        assert config.devices[0]["name"] == "A"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            DeviceManagerConfig.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("retry: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            DeviceManagerConfig.from_yaml(path)

    def test_to_dict_round_trips_through_yaml(self, tmp_path, device_config):
        config = DeviceManagerConfig.from_dict(device_config)
        path = tmp_path / "saved.yaml"
        path.write_text(yaml.safe_dump(config.to_dict()))

        assert DeviceManagerConfig.from_yaml(path) == config

    def test_provider_tracks_disable_and_enable(self):
        config = DeviceManagerConfig()
        provider = config.disabled_devices_provider()
        assert provider() == frozenset()

        config.disable_device("Hue")
        config.disable_device("Hue")
        assert provider() == {"Hue"}
        assert config.disabled_devices == ["Hue"]

        config.enable_device("Hue")
        config.enable_device("Hue")
        assert provider() == frozenset()

    def test_provider_returns_snapshot(self):
        config = DeviceManagerConfig(disabled_devices=["Hue"])
        snapshot = config.disabled_devices_provider()()

        config.enable_device("Hue")

        assert snapshot == {"Hue"}


class TestSubConfigs:
    def test_retry_validate(self):
        config = RetryConfig(attempts=0, interval_s=0)
        config.validate()

        config.attempts = SystemDefaults.MAX_RETRY_ATTEMPTS + 1
        with pytest.raises(ConfigurationError, match="attempts"):
            config.validate()

    def test_api_validate(self):
        with pytest.raises(ConfigurationError, match="host"):
            ApiConfig(host="").validate()

    def test_get_all_defaults(self):
        defaults = SystemDefaults.get_all_defaults()

        assert defaults["RETRY_ATTEMPTS"] == 15
        assert "get_all_defaults" not in defaults


class TestVariableRegistry:
    def test_first_registration_wins(self):
        registry = VariableRegistry()

        assert registry.register("brightness", 1.0)
        assert not registry.register("brightness", 0.5)
        assert registry.get("brightness") == 1.0

    def test_combine_counts_new_names(self):
        registry = VariableRegistry({"a": 1})

        assert registry.combine({"a": 2, "b": 3}) == 1
        assert registry.to_dict() == {"a": 1, "b": 3}
        assert len(registry) == 2
        assert "b" in registry

    def test_set_and_reset(self):
        registry = VariableRegistry({"speed": 1})

        registry.set("speed", 4)
        assert registry.get("speed") == 4
        registry.reset("speed")
        assert registry.get("speed") == 1

    def test_unknown_variable(self):
        registry = VariableRegistry()

        with pytest.raises(KeyError):
            registry.get("nope")
        with pytest.raises(KeyError):
            registry.set("nope", 1)
