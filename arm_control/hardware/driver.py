"""Robot driver interface, result codes and the error taxonomy.

The native driver is consumed through :class:`RobotDriver`, a structural
protocol: any object with these methods works (ctypes binding, network
client, :class:`~arm_control.hardware.simulated.SimulatedDriver`).

Every driver call returns an integer result code.  ``0`` is success,
negative values belong to the error family in :data:`ERROR_DESCRIPTIONS`.

Drivers are selected in ``robot.yaml`` with a ``"module:attribute"`` path
and instantiated by :func:`load_driver`.
"""

from __future__ import annotations

import importlib
import logging
from enum import IntEnum
from typing import Protocol, Sequence, runtime_checkable

from arm_control.hardware.telemetry import RobotStatus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result codes
# ---------------------------------------------------------------------------

OK = 0
ERR_CONNECTION = -1
ERR_INVALID_PARAMETER = -2
ERR_NOT_POWERED = -3
ERR_NOT_ENABLED = -4
ERR_IN_ERROR = -5

ERROR_DESCRIPTIONS: dict[int, str] = {
    OK: "no error",
    ERR_CONNECTION: "connection error",
    ERR_INVALID_PARAMETER: "invalid parameter",
    ERR_NOT_POWERED: "robot not powered",
    ERR_NOT_ENABLED: "robot not enabled",
    ERR_IN_ERROR: "robot in error",
}


def is_error(code: int) -> bool:
    """``True`` for any non-zero result code."""
    return code != OK


def describe_error(code: int) -> str:
    """Map a result code to its human-readable description."""
    return ERROR_DESCRIPTIONS.get(code, f"unknown error code {code}")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ArmError(Exception):
    """Base exception for all arm-control errors."""

    pass


class DriverError(ArmError):
    """A driver call returned a non-zero result code."""

    def __init__(self, code: int, operation: str = "") -> None:
        self.code = code
        self.operation = operation
        self.description = describe_error(code)
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}{self.description}")


class RobotConnectionError(DriverError):
    """The driver refused to create a handle.  Retry ``connect``."""

    pass


class CommandError(DriverError):
    """A control call (power / enable / disable / jog) failed."""

    pass


class PreconditionError(ArmError):
    """Operation invoked in a state that forbids it.  No driver call made."""

    pass


# ---------------------------------------------------------------------------
# Command enums
# ---------------------------------------------------------------------------


class MoveMode(IntEnum):
    """Jog target interpretation (values match the controller API)."""

    ABSOLUTE = 0
    INCREMENTAL = 1


class CoordFrame(IntEnum):
    """Reference frame of a jog command (values match the controller API)."""

    BASE = 0
    JOINT = 1
    TOOL = 2


# ---------------------------------------------------------------------------
# Driver protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class RobotDriver(Protocol):
    """Blocking driver API.  One handle per connection.

    Calls for the same handle are not re-entrant; the caller serialises
    them.
    """

    def create_handle(self, ip: str) -> tuple[int, int]: ...

    def destroy_handle(self, handle: int) -> int: ...

    def power_on(self, handle: int) -> int: ...

    def power_off(self, handle: int) -> int: ...

    def enable(self, handle: int) -> int: ...

    def disable(self, handle: int) -> int: ...

    def read_joint_positions(
        self, handle: int,
    ) -> tuple[int, Sequence[float]]: ...

    def read_tool_pose(self, handle: int) -> tuple[int, Sequence[float]]: ...

    def read_status(self, handle: int) -> tuple[int, RobotStatus]: ...

    def jog(
        self,
        handle: int,
        axis: int,
        mode: MoveMode,
        frame: CoordFrame,
        velocity: float,
        position: float,
    ) -> int: ...

    def stop_jog(self, handle: int, axis: int) -> int: ...


def load_driver(factory_path: str, **kwargs: object) -> RobotDriver:
    """Import and instantiate a driver from a ``"module:attribute"`` path.

    Parameters
    ----------
    factory_path : str
        e.g. ``"arm_control.hardware.simulated:SimulatedDriver"``.
    **kwargs
        Forwarded to the factory.

    Raises
    ------
    ValueError
        If *factory_path* is malformed or the factory result lacks driver methods.
    ImportError
        If the module cannot be imported.
    """
    module_name, sep, attr = factory_path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Driver path must look like 'package.module:Factory', "
            f"got {factory_path!r}"
        )
    module = importlib.import_module(module_name)
    try:
        factory = getattr(module, attr)
    except AttributeError as exc:
        raise ValueError(f"{module_name} has no attribute {attr!r}") from exc

    driver = factory(**kwargs)
    if not isinstance(driver, RobotDriver):
        raise ValueError(f"{factory_path} did not produce a RobotDriver")
    logger.debug("Loaded driver %s", factory_path)
    return driver
