"""Arm configuration loading and validation."""

from arm_control.configs.loader import (
    ArmConfig,
    ConfigError,
    ConnectionConfig,
    JogConfig,
    LoggingConfig,
    PollingConfig,
    load_config,
)

__all__ = [
    "ArmConfig",
    "ConfigError",
    "ConnectionConfig",
    "JogConfig",
    "LoggingConfig",
    "PollingConfig",
    "load_config",
]
