from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Union
import logging

import yaml

from ..common.exceptions import ConfigurationError, OutOfRangeError

logger = logging.getLogger(__name__)


@dataclass
class SystemDefaults:
    """Protocol constants for the DS100 and QLab endpoints"""

    # Fixed UDP ports
    DEVICE_SEND_PORT: ClassVar[int] = 50010
    DEVICE_REPLY_PORT: ClassVar[int] = 50011
    CONSOLE_SEND_PORT: ClassVar[int] = 53000
    CONSOLE_REPLY_PORT: ClassVar[int] = 53001

    # Correlation timing (seconds)
    REQUEST_TIMEOUT: ClassVar[float] = 1.0
    POLL_INTERVAL: ClassVar[float] = 0.25
    POLL_TIMEOUT: ClassVar[float] = 2.5

    # Addressable ranges
    MIN_OBJECT: ClassVar[int] = 1
    MAX_OBJECT: ClassVar[int] = 64
    MIN_MAPPING: ClassVar[int] = 1
    MAX_MAPPING: ClassVar[int] = 4

    # Default session settings
    DEFAULT_DEVICE_ADDRESS: ClassVar[str] = "127.0.0.1"
    DEFAULT_CONSOLE_ADDRESS: ClassVar[str] = "127.0.0.1"
    DEFAULT_NETWORK_PATCH: ClassVar[int] = 1
    DEFAULT_DURATION: ClassVar[float] = 0.0
    DEFAULT_MAPPING: ClassVar[int] = 1
    DEFAULT_LOGGING: ClassVar[int] = 0
    DEFAULT_API_HOST: ClassVar[str] = "127.0.0.1"
    DEFAULT_API_PORT: ClassVar[int] = 8000

    @classmethod
    def get_all_defaults(cls) -> Dict[str, Any]:
        """Get all default values as a dictionary"""
        return {
            name: value
            for name, value in vars(cls).items()
            if name.startswith("DEFAULT_") and isinstance(value, (int, float, str))
        }


def check_object_number(number: Any) -> int:
    """Parse an object number and check it lies in 1-64"""
    try:
        num = int(number)
    except (TypeError, ValueError):
        raise OutOfRangeError(f"Object number is not an integer: {number!r}")
    if not SystemDefaults.MIN_OBJECT <= num <= SystemDefaults.MAX_OBJECT:
        raise OutOfRangeError(
            f"Object number is out of range "
            f"{SystemDefaults.MIN_OBJECT}-{SystemDefaults.MAX_OBJECT}, received {number}"
        )
    return num


def check_mapping(mapping: Any) -> int:
    """Parse a mapping number and check it lies in 1-4"""
    try:
        num = int(mapping)
    except (TypeError, ValueError):
        raise OutOfRangeError(f"Mapping is not an integer: {mapping!r}")
    if not SystemDefaults.MIN_MAPPING <= num <= SystemDefaults.MAX_MAPPING:
        raise OutOfRangeError(
            f"Mapping number is out of range "
            f"{SystemDefaults.MIN_MAPPING}-{SystemDefaults.MAX_MAPPING}, received {mapping}"
        )
    return num


@dataclass(frozen=True)
class DeviceConfig:
    """DS100 endpoint settings"""

    address: str = SystemDefaults.DEFAULT_DEVICE_ADDRESS
    default_mapping: int = SystemDefaults.DEFAULT_MAPPING

    @property
    def port(self) -> int:
        return SystemDefaults.DEVICE_SEND_PORT

    @property
    def reply_port(self) -> int:
        return SystemDefaults.DEVICE_REPLY_PORT

    def validate(self) -> None:
        if not self.address:
            raise ConfigurationError("Device address must not be empty")
        try:
            check_mapping(self.default_mapping)
        except OutOfRangeError as e:
            raise ConfigurationError(f"Invalid default mapping: {e}")


@dataclass(frozen=True)
class ConsoleConfig:
    """QLab endpoint settings"""

    address: str = SystemDefaults.DEFAULT_CONSOLE_ADDRESS
    network_patch: int = SystemDefaults.DEFAULT_NETWORK_PATCH
    default_duration: float = SystemDefaults.DEFAULT_DURATION

    @property
    def port(self) -> int:
        return SystemDefaults.CONSOLE_SEND_PORT

    @property
    def reply_port(self) -> int:
        return SystemDefaults.CONSOLE_REPLY_PORT

    def validate(self) -> None:
        if not self.address:
            raise ConfigurationError("Console address must not be empty")
        if self.network_patch < 1:
            raise ConfigurationError("Network patch number must be at least 1")
        if self.default_duration < 0:
            raise ConfigurationError("Default duration must not be negative")


@dataclass(frozen=True)
class ApiConfig:
    """Control API bind settings"""

    host: str = SystemDefaults.DEFAULT_API_HOST
    port: int = SystemDefaults.DEFAULT_API_PORT

    def validate(self) -> None:
        if not 1024 <= self.port <= 65535:
            raise ConfigurationError("API port must be between 1024 and 65535")


@dataclass(frozen=True)
class SystemConfig:
    """Main session configuration"""

    device: DeviceConfig = field(default_factory=DeviceConfig)
    console: ConsoleConfig = field(default_factory=ConsoleConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: int = SystemDefaults.DEFAULT_LOGGING
    objects: Dict[int, Optional[str]] = field(default_factory=dict)

    def __post_init__(self):
        """Validate entire configuration"""
        try:
            self.device.validate()
            self.console.validate()
            self.api.validate()
            if self.logging not in (0, 1, 2):
                raise ConfigurationError(
                    f"Logging level must be 0, 1 or 2, received {self.logging}"
                )
            for number in self.objects:
                check_object_number(number)
        except OutOfRangeError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ConfigurationError(str(e))
        except ConfigurationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    @property
    def log_level(self) -> int:
        """Standard logging level for the configured verbosity"""
        return {0: logging.ERROR, 1: logging.INFO, 2: logging.DEBUG}[self.logging]

    @classmethod
    def create_default(cls) -> "SystemConfig":
        """Create default configuration"""
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemConfig":
        """Build a configuration from a parsed YAML/JSON mapping"""
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")
        try:
            device = DeviceConfig(**(data.get("device") or {}))
            console = ConsoleConfig(**(data.get("console") or {}))
            api = ApiConfig(**(data.get("api") or {}))
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration option: {e}")

        objects: Dict[int, Optional[str]] = {}
        for number, name in (data.get("objects") or {}).items():
            try:
                objects[check_object_number(number)] = (
                    None if name is None else str(name)
                )
            except OutOfRangeError as e:
                raise ConfigurationError(str(e))

        return cls(
            device=device,
            console=console,
            api=api,
            logging=int(data.get("logging", SystemDefaults.DEFAULT_LOGGING)),
            objects=objects,
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SystemConfig":
        """Load configuration from a YAML file"""
        config_path = Path(path)
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Cannot read {config_path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")
        config = cls.from_dict(data)
        logger.info(f"Configuration loaded from {config_path}")
        return config
