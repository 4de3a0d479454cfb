"""Tests for the arm configuration loader.

Validates that:
    - The shipped robot.yaml loads with the documented defaults
    - Optional sections fall back to defaults
    - Out-of-range and malformed values raise ConfigError
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from arm_control.configs.loader import (
    ArmConfig,
    ConfigError,
    PollingConfig,
    load_config,
)
from arm_control.hardware.driver import CoordFrame, MoveMode


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> ArmConfig:
    """Load the default robot.yaml shipped with the package."""
    return load_config()


@pytest.fixture()
def write_config(tmp_path: Path):
    """Write YAML text to a temp file and return its path."""
    def _write(text: str) -> Path:
        path = tmp_path / "robot.yaml"
        path.write_text(text, encoding="utf-8")
        return path
    return _write


MINIMAL = """
connection:
  robot_ip: "10.0.0.5"
"""


# ---------------------------------------------------------------------------
# Shipped config
# ---------------------------------------------------------------------------


class TestDefaultConfig:
    def test_loads(self, config: ArmConfig) -> None:
        assert config.connection.robot_ip
        assert ":" in config.connection.driver

    def test_polling_in_range(self, config: ArmConfig) -> None:
        assert 10 <= config.polling.frequency_hz <= 125
        assert config.polling.join_timeout_s > 0

    def test_status_polling_off(self, config: ArmConfig) -> None:
        assert config.polling.read_status is False

    def test_jog_enums(self, config: ArmConfig) -> None:
        assert isinstance(config.jog.mode, MoveMode)
        assert isinstance(config.jog.frame, CoordFrame)

    def test_frozen(self, config: ArmConfig) -> None:
        with pytest.raises(AttributeError):
            config.polling = PollingConfig()  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Custom files
# ---------------------------------------------------------------------------


class TestCustomConfig:
    def test_minimal_uses_defaults(self, write_config) -> None:
        cfg = load_config(write_config(MINIMAL))
        assert cfg.connection.robot_ip == "10.0.0.5"
        assert cfg.connection.driver.endswith(":SimulatedDriver")
        assert cfg.polling.frequency_hz == 60
        assert cfg.polling.join_timeout_s == 1.0
        assert cfg.polling.period_s == pytest.approx(1 / 60)
        assert cfg.jog.mode is MoveMode.INCREMENTAL
        assert cfg.jog.frame is CoordFrame.JOINT
        assert cfg.logging.level == "INFO"
        assert cfg.logging.log_file is None

    def test_choices_case_insensitive(self, write_config) -> None:
        cfg = load_config(write_config(
            MINIMAL + "jog:\n  mode: Absolute\n  frame: TOOL\n"
        ))
        assert cfg.jog.mode is MoveMode.ABSOLUTE
        assert cfg.jog.frame is CoordFrame.TOOL

    def test_short_join_timeout_warns(
        self, write_config, caplog: pytest.LogCaptureFixture,
    ) -> None:
        path = write_config(
            MINIMAL + "polling:\n  frequency_hz: 10\n  join_timeout_s: 0.05\n"
        )
        with caplog.at_level(logging.WARNING):
            load_config(path)
        assert "join_timeout_s" in caplog.text

    @pytest.mark.parametrize(
        "extra",
        [
            "polling:\n  frequency_hz: 9\n",
            "polling:\n  frequency_hz: 126\n",
            "polling:\n  frequency_hz: 60.5\n",
            "polling:\n  join_timeout_s: 0\n",
            "polling:\n  join_timeout_s: fast\n",
            "jog:\n  mode: sideways\n",
            "jog:\n  frame: world\n",
            "jog:\n  default_velocity: -1\n",
            "logging:\n  level: LOUD\n",
        ],
    )
    def test_invalid_values(self, write_config, extra: str) -> None:
        with pytest.raises(ConfigError):
            load_config(write_config(MINIMAL + extra))

    def test_missing_robot_ip(self, write_config) -> None:
        with pytest.raises(ConfigError, match="robot_ip"):
            load_config(write_config("connection:\n  driver: a.b:C\n"))

    def test_blank_robot_ip(self, write_config) -> None:
        with pytest.raises(ConfigError, match="empty"):
            load_config(write_config('connection:\n  robot_ip: "  "\n'))

    def test_bad_driver_path(self, write_config) -> None:
        with pytest.raises(ConfigError, match="module:attribute"):
            load_config(write_config(MINIMAL + '  driver: "no_colon"\n'))

    def test_empty_file(self, write_config) -> None:
        with pytest.raises(ConfigError, match="Empty"):
            load_config(write_config(""))

    def test_malformed_yaml(self, write_config) -> None:
        with pytest.raises(ConfigError, match="Malformed"):
            load_config(write_config("connection: [unclosed\n"))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")
