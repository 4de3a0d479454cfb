"""Tests for the in-process simulated arm."""

from __future__ import annotations

import time

import pytest

from arm_control.hardware.driver import (
    ERR_CONNECTION,
    ERR_IN_ERROR,
    ERR_INVALID_PARAMETER,
    ERR_NOT_ENABLED,
    ERR_NOT_POWERED,
    OK,
    CoordFrame,
    MoveMode,
)
from arm_control.hardware.simulated import SimulatedDriver


@pytest.fixture()
def driver() -> SimulatedDriver:
    return SimulatedDriver(first_handle=42)


@pytest.fixture()
def handle(driver: SimulatedDriver) -> int:
    return driver.create_handle("10.0.0.5")[1]


def ready(driver: SimulatedDriver, handle: int) -> None:
    assert driver.power_on(handle) == OK
    assert driver.enable(handle) == OK


class TestHandles:
    def test_handles_increment(self, driver: SimulatedDriver) -> None:
        assert driver.create_handle("a") == (OK, 42)
        assert driver.create_handle("b") == (OK, 43)
        assert driver.open_handles == [42, 43]

    def test_rejected_ip(self) -> None:
        driver = SimulatedDriver(reject_ips=["10.0.0.9"])
        assert driver.create_handle("10.0.0.9")[0] == ERR_CONNECTION
        assert driver.open_handles == []

    def test_destroy(self, driver: SimulatedDriver, handle: int) -> None:
        assert driver.destroy_handle(handle) == OK
        assert driver.destroy_handle(handle) == ERR_CONNECTION

    def test_unknown_handle(self, driver: SimulatedDriver) -> None:
        assert driver.power_on(999) == ERR_CONNECTION
        assert driver.read_joint_positions(999)[0] == ERR_CONNECTION


class TestPowerRules:
    def test_enable_needs_power(
        self, driver: SimulatedDriver, handle: int,
    ) -> None:
        assert driver.enable(handle) == ERR_NOT_POWERED

    def test_enable_blocked_in_error(
        self, driver: SimulatedDriver, handle: int,
    ) -> None:
        driver.power_on(handle)
        driver.set_error(handle, 12)
        assert driver.enable(handle) == ERR_IN_ERROR
        driver.set_error(handle, 0)
        assert driver.enable(handle) == OK

    def test_power_off_disables(
        self, driver: SimulatedDriver, handle: int,
    ) -> None:
        ready(driver, handle)
        driver.power_off(handle)
        _, status = driver.read_status(handle)
        assert not status.powered_on
        assert not status.enabled


class TestJog:
    def test_requires_enabled(
        self, driver: SimulatedDriver, handle: int,
    ) -> None:
        args = (0, MoveMode.INCREMENTAL, CoordFrame.JOINT, 0.1, 0.1)
        assert driver.jog(handle, *args) == ERR_NOT_POWERED
        driver.power_on(handle)
        assert driver.jog(handle, *args) == ERR_NOT_ENABLED

    def test_bad_axis(self, driver: SimulatedDriver, handle: int) -> None:
        ready(driver, handle)
        code = driver.jog(handle, 6, MoveMode.INCREMENTAL, CoordFrame.JOINT, 0.1, 0.1)
        assert code == ERR_INVALID_PARAMETER

    def test_incremental_and_absolute(
        self, driver: SimulatedDriver, handle: int,
    ) -> None:
        ready(driver, handle)
        driver.jog(handle, 1, MoveMode.INCREMENTAL, CoordFrame.JOINT, 0.1, 0.2)
        driver.jog(handle, 1, MoveMode.INCREMENTAL, CoordFrame.JOINT, 0.1, 0.2)
        assert driver.arm(handle).joints[1] == pytest.approx(0.4)

        driver.jog(handle, 1, MoveMode.ABSOLUTE, CoordFrame.JOINT, 0.1, -1.0)
        assert driver.arm(handle).joints[1] == -1.0

    def test_cartesian_frame_moves_pose(
        self, driver: SimulatedDriver, handle: int,
    ) -> None:
        ready(driver, handle)
        driver.jog(handle, 2, MoveMode.INCREMENTAL, CoordFrame.BASE, 10.0, 5.0)
        assert driver.arm(handle).pose[2] == 5.0
        assert driver.arm(handle).joints == [0.0] * 6

    def test_moving_flag(self, driver: SimulatedDriver, handle: int) -> None:
        ready(driver, handle)
        driver.jog(handle, 0, MoveMode.INCREMENTAL, CoordFrame.JOINT, 0.1, 0.1)
        assert driver.read_status(handle)[1].is_moving
        driver.stop_jog(handle, 0)
        assert not driver.read_status(handle)[1].is_moving


class TestTestHooks:
    def test_inject_fault_consumed_in_order(
        self, driver: SimulatedDriver, handle: int,
    ) -> None:
        driver.inject_fault("read_tool_pose", -3, times=2)
        assert driver.read_tool_pose(handle)[0] == -3
        assert driver.read_tool_pose(handle)[0] == -3
        assert driver.read_tool_pose(handle)[0] == OK

    def test_inject_fault_unknown_method(self, driver: SimulatedDriver) -> None:
        with pytest.raises(ValueError):
            driver.inject_fault("teleport", -1)

    def test_read_delay(self) -> None:
        driver = SimulatedDriver(read_delay_s=0.05)
        _, handle = driver.create_handle("10.0.0.5")
        start = time.monotonic()
        driver.read_joint_positions(handle)
        assert time.monotonic() - start >= 0.04

    def test_calls_recorded(self, driver: SimulatedDriver, handle: int) -> None:
        driver.power_on(handle)
        assert driver.calls[-1] == ("power_on", (handle,))
        assert driver.call_count("power_on") == 1
