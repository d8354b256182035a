"""Tests for configuration loading and validation."""

import logging

import pytest

from dbscene.common.exceptions import ConfigurationError, OutOfRangeError
from dbscene.core.config import (
    ConsoleConfig,
    DeviceConfig,
    SystemConfig,
    SystemDefaults,
    check_mapping,
    check_object_number,
)


class TestDefaults:
    """Test default configuration"""

    def test_create_default(self):
        config = SystemConfig.create_default()
        assert config.device.port == 50010
        assert config.device.reply_port == 50011
        assert config.console.port == 53000
        assert config.console.reply_port == 53001
        assert config.device.default_mapping == 1
        assert config.objects == {}
        assert config.log_level == logging.ERROR

    def test_get_all_defaults(self):
        defaults = SystemDefaults.get_all_defaults()
        assert defaults["DEFAULT_MAPPING"] == 1
        assert "DEVICE_SEND_PORT" not in defaults

    def test_timing(self):
        assert SystemDefaults.REQUEST_TIMEOUT == 1.0
        assert SystemDefaults.POLL_INTERVAL == 0.25
        assert SystemDefaults.POLL_TIMEOUT == 2.5


class TestLoading:
    """Test configuration files"""

    def test_from_yaml(self, config_file):
        config = SystemConfig.from_yaml(config_file)
        assert config.device.address == "10.0.0.5"
        assert config.device.default_mapping == 2
        assert config.console.network_patch == 3
        assert config.console.default_duration == 1.5
        assert config.objects == {1: "Homer", 2: None, 5: "Bart"}
        assert config.log_level == logging.DEBUG

    def test_string_object_keys(self):
        config = SystemConfig.from_dict({"objects": {"4": "Lisa"}})
        assert config.objects == {4: "Lisa"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            SystemConfig.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("device: [unclosed")
        with pytest.raises(ConfigurationError):
            SystemConfig.from_yaml(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert SystemConfig.from_yaml(path) == SystemConfig.create_default()

    @pytest.mark.parametrize(
        "data",
        [
            {"objects": {65: "Nelson"}},
            {"objects": {0: "Nelson"}},
            {"device": {"default_mapping": 5}},
            {"device": {"port": 1234}},
            {"console": {"network_patch": 0}},
            {"console": {"default_duration": -1}},
            {"logging": 3},
            ["not", "a", "mapping"],
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ConfigurationError):
            SystemConfig.from_dict(data)


class TestRanges:
    """Test range checks"""

    def test_object_numbers(self):
        assert check_object_number(1) == 1
        assert check_object_number("64") == 64
        for bad in (0, 65, None, "abc"):
            with pytest.raises(OutOfRangeError):
                check_object_number(bad)

    def test_mappings(self):
        assert check_mapping(4) == 4
        for bad in (0, 5):
            with pytest.raises(OutOfRangeError):
                check_mapping(bad)

    def test_component_validation(self):
        with pytest.raises(ConfigurationError):
            DeviceConfig(address="").validate()
        with pytest.raises(ConfigurationError):
            ConsoleConfig(address="").validate()
