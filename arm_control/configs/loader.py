"""Configuration loader for arm control.

Loads and validates ``robot.yaml`` into typed, frozen dataclasses.
Connection address, driver selection, polling rate and jog defaults all
come from the config.

Usage::

    from arm_control.configs.loader import load_config
    cfg = load_config()                     # default path
    cfg = load_config("/custom/robot.yaml") # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from arm_control.hardware.driver import CoordFrame, MoveMode
from arm_control.hardware.polling import MAX_FREQUENCY_HZ, MIN_FREQUENCY_HZ
from src.utils.fs import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_DRIVER = "arm_control.hardware.simulated:SimulatedDriver"

_MODES = {"absolute": MoveMode.ABSOLUTE, "incremental": MoveMode.INCREMENTAL}
_FRAMES = {
    "base": CoordFrame.BASE,
    "joint": CoordFrame.JOINT,
    "tool": CoordFrame.TOOL,
}
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConnectionConfig:
    """Robot address and driver factory."""

    robot_ip: str
    driver: str = DEFAULT_DRIVER


@dataclass(frozen=True)
class PollingConfig:
    """Telemetry polling settings.

    Parameters
    ----------
    frequency_hz : int
        Read cycles per second, 10..125.
    join_timeout_s : float
        Maximum wait for the polling thread during disconnect.
    read_status : bool
        Also refresh status flags each cycle.  ``False`` keeps status
        updates tied to connect and power/enable commands.
    """

    frequency_hz: int = 60
    join_timeout_s: float = 1.0
    read_status: bool = False

    @property
    def period_s(self) -> float:
        return 1.0 / self.frequency_hz


@dataclass(frozen=True)
class JogConfig:
    """Defaults applied to ``jog_joint`` calls."""

    mode: MoveMode = MoveMode.INCREMENTAL
    frame: CoordFrame = CoordFrame.JOINT
    default_velocity: float = 0.1


@dataclass(frozen=True)
class LoggingConfig:
    """Arguments for ``src.utils.logging_config.setup_logging``."""

    level: str = "INFO"
    log_file: str | None = None
    json: bool = False
    color: bool = True


@dataclass(frozen=True)
class ArmConfig:
    """Complete configuration loaded from ``robot.yaml``."""

    connection: ConnectionConfig
    polling: PollingConfig
    jog: JogConfig
    logging: LoggingConfig


# ---------------------------------------------------------------------------
# Internal parsing helpers
# ---------------------------------------------------------------------------


def _parse_choice(section: str, key: str, value: Any, choices: dict) -> Any:
    name = str(value).strip().lower()
    if name not in choices:
        raise ConfigError(
            f"{section}.{key} must be one of {sorted(choices)}, got {value!r}"
        )
    return choices[name]


def _parse_polling(data: dict[str, Any]) -> PollingConfig:
    freq = data.get("frequency_hz", 60)
    if isinstance(freq, bool) or int(freq) != freq:
        raise ConfigError(f"polling.frequency_hz must be an integer, got {freq!r}")
    return PollingConfig(
        frequency_hz=int(freq),
        join_timeout_s=float(data.get("join_timeout_s", 1.0)),
        read_status=bool(data.get("read_status", False)),
    )


def _parse_jog(data: dict[str, Any]) -> JogConfig:
    return JogConfig(
        mode=_parse_choice("jog", "mode", data.get("mode", "incremental"), _MODES),
        frame=_parse_choice("jog", "frame", data.get("frame", "joint"), _FRAMES),
        default_velocity=float(data.get("default_velocity", 0.1)),
    )


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LEVELS:
        raise ConfigError(f"logging.level must be one of {_LEVELS}, got {level!r}")
    log_file = data.get("log_file")
    return LoggingConfig(
        level=level,
        log_file=str(log_file) if log_file else None,
        json=bool(data.get("json", False)),
        color=bool(data.get("color", True)),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_config(cfg: ArmConfig) -> None:
    """Validate value ranges.

    Raises
    ------
    ConfigError
        On any out-of-range value.
    """
    if not cfg.connection.robot_ip.strip():
        raise ConfigError("connection.robot_ip must not be empty")

    if ":" not in cfg.connection.driver:
        raise ConfigError(
            f"connection.driver must look like 'module:attribute', "
            f"got {cfg.connection.driver!r}"
        )

    p = cfg.polling
    if not MIN_FREQUENCY_HZ <= p.frequency_hz <= MAX_FREQUENCY_HZ:
        raise ConfigError(
            f"polling.frequency_hz must be within "
            f"{MIN_FREQUENCY_HZ}..{MAX_FREQUENCY_HZ}, got {p.frequency_hz}"
        )
    if p.join_timeout_s <= 0:
        raise ConfigError(
            f"polling.join_timeout_s must be > 0, got {p.join_timeout_s}"
        )
    if p.join_timeout_s < p.period_s:
        logger.warning(
            "polling.join_timeout_s (%.3fs) is shorter than one polling "
            "period (%.3fs); disconnect may not wait for the last cycle",
            p.join_timeout_s,
            p.period_s,
        )

    if cfg.jog.default_velocity <= 0:
        raise ConfigError(
            f"jog.default_velocity must be > 0, got {cfg.jog.default_velocity}"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> ArmConfig:
    """Load and validate arm configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``robot.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    ArmConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If the YAML is malformed or any field is missing or fails
        validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "robot.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    try:
        data: dict[str, Any] = load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed YAML in {path}: {exc}") from exc
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")

    try:
        conn = data["connection"]
        connection = ConnectionConfig(
            robot_ip=str(conn["robot_ip"]),
            driver=str(conn.get("driver", DEFAULT_DRIVER)),
        )

        config = ArmConfig(
            connection=connection,
            polling=_parse_polling(data.get("polling") or {}),
            jog=_parse_jog(data.get("jog") or {}),
            logging=_parse_logging(data.get("logging") or {}),
        )

        _validate_config(config)
        logger.info("Configuration loaded successfully")
        return config

    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc
