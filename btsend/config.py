"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

TRANSPORTS = ('rfcomm', 'tcp')


def _optional_float(value) -> Optional[float]:
    if value is None or value == '' or str(value).lower() == 'none':
        return None
    return float(value)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# Environment variable -> (Config field, parser)
ENV_VARS = {
    'BTSEND_TRANSPORT': ('transport', lambda v: v.lower()),
    'BTSEND_RFCOMM_CHANNEL': ('rfcomm_channel', int),
    'BTSEND_TCP_PORT': ('tcp_port', int),
    'BTSEND_QUIESCE_DISCOVERY': ('quiesce_discovery', _env_bool),
    'BTSEND_BLUETOOTHCTL': ('bluetoothctl_path', str),
    'BTSEND_CHUNK_SIZE': ('chunk_size', int),
    'BTSEND_CONNECT_TIMEOUT': ('connect_timeout', float),
    'BTSEND_WRITE_TIMEOUT': ('write_timeout', _optional_float),
    'BTSEND_LOG_LEVEL': ('log_level', str),
}


def env_overrides() -> dict:
    """
    Settings explicitly present in the environment (or .env).

    Only variables that are set appear in the result, so an env value
    equal to the default still overrides a config file.
    """
    load_dotenv()

    overrides = {}
    for name, (key, parse) in ENV_VARS.items():
        if name in os.environ:
            overrides[key] = parse(os.environ[name])
    return overrides


@dataclass
class Config:
    """
    Sender Configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (BTSEND_*)
    2. Config file (btsend.json)
    3. Default values
    """
    # Transport
    transport: str = 'rfcomm'
    rfcomm_channel: int = 1
    tcp_port: int = 8469

    # Adapter
    quiesce_discovery: bool = True
    bluetoothctl_path: str = 'bluetoothctl'

    # Performance
    chunk_size: int = 1024  # 1KB

    # Timeouts (seconds); write_timeout None means writes block
    connect_timeout: float = 15.0
    write_timeout: Optional[float] = None

    # Logging
    log_level: str = 'INFO'

    def validate(self):
        """Raise ValueError on out-of-range settings."""
        if self.transport not in TRANSPORTS:
            raise ValueError(f"transport must be one of {TRANSPORTS}, got {self.transport!r}")
        if not 1 <= self.rfcomm_channel <= 30:
            raise ValueError(f"rfcomm_channel must be 1-30, got {self.rfcomm_channel}")
        if not 0 < self.tcp_port < 65536:
            raise ValueError(f"tcp_port out of range: {self.tcp_port}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be positive, got {self.connect_timeout}")
        if self.write_timeout is not None and self.write_timeout <= 0:
            raise ValueError(f"write_timeout must be positive, got {self.write_timeout}")
        return self

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        config = cls()
        for key, value in env_overrides().items():
            setattr(config, key, value)
        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        # Transport
        config.transport = data.get('transport', config.transport)
        config.rfcomm_channel = data.get('rfcomm_channel', config.rfcomm_channel)
        config.tcp_port = data.get('tcp_port', config.tcp_port)

        # Adapter
        config.quiesce_discovery = data.get('quiesce_discovery', config.quiesce_discovery)
        config.bluetoothctl_path = data.get('bluetoothctl_path', config.bluetoothctl_path)

        # Performance
        config.chunk_size = data.get('chunk_size', config.chunk_size)

        # Timeouts
        config.connect_timeout = data.get('connect_timeout', config.connect_timeout)
        config.write_timeout = _optional_float(data.get('write_timeout', config.write_timeout))

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'transport': self.transport,
            'rfcomm_channel': self.rfcomm_channel,
            'tcp_port': self.tcp_port,
            'quiesce_discovery': self.quiesce_discovery,
            'bluetoothctl_path': self.bluetoothctl_path,
            'chunk_size': self.chunk_size,
            'connect_timeout': self.connect_timeout,
            'write_timeout': self.write_timeout,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with whatever the environment sets
    for key, value in env_overrides().items():
        setattr(config, key, value)

    return config.validate()


# Example config file template
EXAMPLE_CONFIG = """
{
  "transport": "rfcomm",
  "rfcomm_channel": 1,
  "tcp_port": 8469,
  "quiesce_discovery": true,
  "bluetoothctl_path": "bluetoothctl",
  "chunk_size": 1024,
  "connect_timeout": 15.0,
  "write_timeout": null,
  "log_level": "INFO"
}
"""
