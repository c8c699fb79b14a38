"""
Configuration for the lifxcontrol library.

Settings can be built in code or read from a YAML file:

    lifx:
      broadcast_address: 192.168.1.255
      timeout: 1.5
      exact_firmware_match: false
"""

from dataclasses import dataclass, fields
from typing import Any, Optional, Self

import yaml

from .exceptions import LifxConfigurationError
from .io import ClientConst


@dataclass
class LifxConfig:
    broadcast_address: str = ClientConst.BROADCAST_ADDRESS
    port: int = ClientConst.PORT
    listen_ip: str = "0.0.0.0"
    listen_port: int = 0
    timeout: float = ClientConst.DEFAULT_TIMEOUT
    discovery_interval: float = 1.0
    # Compare firmware to the extended multizone minimum by equality instead of >=
    exact_firmware_match: bool = False
    products_path: Optional[str] = None
    print_traffic: bool = False

    def __post_init__(self):
        if not 0 < self.port <= 65535:
            raise LifxConfigurationError(f"port must be 1-65535, got {self.port}")
        if not 0 <= self.listen_port <= 65535:
            raise LifxConfigurationError(f"listen_port must be 0-65535, got {self.listen_port}")
        if not ClientConst.MIN_TIMEOUT <= self.timeout <= ClientConst.MAX_TIMEOUT:
            raise LifxConfigurationError(f"timeout must be between {ClientConst.MIN_TIMEOUT} and {ClientConst.MAX_TIMEOUT}, got {self.timeout}")
        if self.discovery_interval <= 0:
            raise LifxConfigurationError(f"discovery_interval must be positive, got {self.discovery_interval}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise LifxConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        try:
            return cls(**data)
        except TypeError as e:
            raise LifxConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: str) -> Self:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as e:
            raise LifxConfigurationError(f"Unable to read configuration from {path}: {e}") from e
        if not isinstance(data, dict):
            raise LifxConfigurationError(f"Configuration in {path} must be a mapping")
        section = data.get("lifx", data)
        if not isinstance(section, dict):
            raise LifxConfigurationError(f"'lifx' section in {path} must be a mapping")
        return cls.from_dict(section)
